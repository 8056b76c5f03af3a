"""
Numba-accelerated batch screening of spin configurations.

The kernel works on the spin-independent orbit relation tensors computed by
the classifier, flattened into contiguous arrays, and evaluates a whole batch
of candidate ids per call.

The per-candidate criterion is an approximation of the exact classifier:
it does not apply the Luttinger-ferrimagnet exclusion, and instead of
counting related atoms it compares the number of (operation, pair) hits for
any symmetry relation with the number of inversion/translation hits. Every
configuration the exact classifier accepts is also accepted here, but the
kernel may accept configurations the exact test rejects (partially related
sublattices, or ties decided differently near the tolerance boundary).
"""

import numpy as np
from typing import Tuple

from numba import njit, prange

from .classifier import AltermagnetClassifier


VERDICT_INVALID = -1
VERDICT_REJECTED = 0
VERDICT_ACCEPTED = 1


@njit(parallel=True)
def approximate_altermagnet_batch(
    candidate_ids,
    magnetic_indices,
    n_atoms,
    orbit_ptr,
    orbit_members,
    relation_ptr,
    n_ops,
    maps_onto,
    it_pair
):
    """
    Screen a batch of candidate ids.

    Args:
        candidate_ids: (n_candidates,) int64 candidate ids
        magnetic_indices: (M,) atom index of every candidate bit
        n_atoms: Total number of atoms
        orbit_ptr: (n_orbits + 1,) offsets into orbit_members
        orbit_members: Atom indices grouped by orbit
        relation_ptr: (n_orbits,) offsets into the flattened relation tensors
        n_ops: Number of symmetry operations
        maps_onto: Flattened (n_ops, size, size) relation blocks per orbit
        it_pair: Flattened inversion/translation blocks, same layout

    Returns:
        (n_candidates,) int8 array: -1 invalid, 0 rejected, 1 accepted
    """
    n_candidates = candidate_ids.shape[0]
    n_magnetic = magnetic_indices.shape[0]
    n_orbits = orbit_ptr.shape[0] - 1
    verdicts = np.zeros(n_candidates, dtype=np.int8)

    for c in prange(n_candidates):
        spins = np.zeros(n_atoms, dtype=np.int8)
        cid = candidate_ids[c]
        for m in range(n_magnetic):
            if (cid >> m) & 1:
                spins[magnetic_indices[m]] = -1
            else:
                spins[magnetic_indices[m]] = 1

        accepted = False
        invalid = False

        for k in range(n_orbits):
            start = orbit_ptr[k]
            size = orbit_ptr[k + 1] - start
            if size < 2:
                continue

            n_up = 0
            n_down = 0
            for a in range(size):
                s = spins[orbit_members[start + a]]
                if s == 1:
                    n_up += 1
                elif s == -1:
                    n_down += 1
            if n_up == 0 and n_down == 0:
                continue
            if n_up != n_down:
                invalid = True
                break
            if accepted:
                continue

            base = relation_ptr[k]
            block = size * size
            n_sym_hits = 0
            n_it_hits = 0

            for op in range(n_ops):
                offset = base + op * block

                # Operation must send every magnetic atom onto an opposite spin
                retained = True
                for a in range(size):
                    si = spins[orbit_members[start + a]]
                    if si == 0:
                        continue
                    found = False
                    for b in range(size):
                        if spins[orbit_members[start + b]] == -si and maps_onto[offset + a * size + b]:
                            found = True
                            break
                    if not found:
                        retained = False
                        break
                if not retained:
                    continue

                for a in range(size):
                    si = spins[orbit_members[start + a]]
                    if si == 0:
                        continue
                    for b in range(a + 1, size):
                        if spins[orbit_members[start + b]] != -si:
                            continue
                        if maps_onto[offset + a * size + b]:
                            n_sym_hits += 1
                        if it_pair[offset + a * size + b]:
                            n_it_hits += 1

            if n_sym_hits > n_it_hits:
                accepted = True

        if invalid:
            verdicts[c] = -1
        elif accepted:
            verdicts[c] = 1

    return verdicts


def pack_classifier(classifier: AltermagnetClassifier) -> Tuple[np.ndarray, ...]:
    """
    Flatten a classifier's orbit relations into kernel-ready arrays.

    Returns:
        Tuple (orbit_ptr, orbit_members, relation_ptr, n_ops, maps_onto, it_pair)
    """
    n_ops = len(classifier.structure.symmetry_operations)

    orbit_ptr = [0]
    orbit_members = []
    relation_ptr = []
    maps_blocks = []
    it_blocks = []
    cursor = 0

    for orbit_id, atom_ids in classifier.orbits:
        orbit_members.extend(int(i) for i in atom_ids)
        orbit_ptr.append(len(orbit_members))
        relation_ptr.append(cursor)

        if len(atom_ids) > 1:
            relations = classifier.relations[orbit_id]
            maps_blocks.append(relations.maps_onto.ravel())
            it_blocks.append(relations.it_pair.ravel())
            cursor += relations.maps_onto.size

    if maps_blocks:
        maps_onto = np.ascontiguousarray(np.concatenate(maps_blocks))
        it_pair = np.ascontiguousarray(np.concatenate(it_blocks))
    else:
        maps_onto = np.zeros(0, dtype=np.bool_)
        it_pair = np.zeros(0, dtype=np.bool_)

    return (
        np.array(orbit_ptr, dtype=np.int64),
        np.array(orbit_members, dtype=np.int64),
        np.array(relation_ptr, dtype=np.int64),
        n_ops,
        maps_onto,
        it_pair
    )


def check_numba_availability():
    """Check if Numba is working correctly."""
    try:
        # Test compilation with a simple function
        @njit
        def test_func(x):
            return x * 2

        test_func(5.0)
        return True, "Numba available and working"

    except Exception as e:
        return False, f"Numba installation issue: {e}"
