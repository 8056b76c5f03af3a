#!/usr/bin/env python3
"""
Test the BAND.dat spin-splitting analysis and the bands command.
"""

import pytest

from amcheck import analyze_band_file
from amcheck.analysis import parse_band_header, rank_bands
from amcheck.cli import main

SPLIT_BANDS = """\
# Band-Structure Data
# NKPTS & NBANDS:  4   2
# Band-Index    1
  0.000  -1.000  -1.000
  0.100  -0.900  -0.950
  0.200  -0.800  -0.800
  0.300  -0.700  -0.700

# Band-Index    2
  0.000   1.000   1.000
  0.100   1.100   1.120
  0.200   1.200   1.200
  0.300   1.300   1.300
"""

DEGENERATE_BANDS = """\
# NKPTS & NBANDS:  2   1
# Band-Index    1
  0.000   0.500   0.500
  0.100   0.600   0.600
"""


@pytest.fixture
def band_file(tmp_path):
    def write(text):
        path = tmp_path / "BAND.dat"
        path.write_text(text)
        return str(path)
    return write


def test_splitting_above_threshold(band_file):
    results = analyze_band_file(band_file(SPLIT_BANDS))

    assert results['nkpts'] == 4
    assert results['nbands'] == 2
    assert [band['band_index'] for band in results['bands']] == [1, 2]
    assert results['max_difference'] == pytest.approx(0.05)
    assert results['max_band_index'] == 1
    assert results['max_point_index'] == 1
    assert results['bands'][1]['max_difference'] == pytest.approx(0.02)
    assert results['average_difference'] == pytest.approx(0.07 / 8)
    assert results['n_significant_bands'] == 2
    assert results['is_altermagnetic']


def test_splitting_below_threshold(band_file):
    results = analyze_band_file(band_file(SPLIT_BANDS), threshold=0.1)

    assert results['max_difference'] == pytest.approx(0.05)
    assert results['n_significant_bands'] == 0
    assert not results['is_altermagnetic']


def test_degenerate_bands_have_no_maximum(band_file):
    results = analyze_band_file(band_file(DEGENERATE_BANDS))
    assert results['max_difference'] == 0.0
    assert results['max_band_index'] == -1
    assert not results['is_altermagnetic']


def test_rows_beyond_nkpts_are_ignored(band_file):
    text = DEGENERATE_BANDS + "  0.200   0.700   5.000\n"
    results = analyze_band_file(band_file(text))
    assert len(results['bands'][0]['k_path']) == 2
    assert not results['is_altermagnetic']


def test_bands_ranked_by_splitting(band_file):
    results = analyze_band_file(band_file(SPLIT_BANDS))
    ranking = rank_bands(results)
    assert [index for index, _ in ranking] == [1, 2]


def test_missing_header(band_file):
    with pytest.raises(ValueError, match="NKPTS & NBANDS"):
        analyze_band_file(band_file("# Band-Index 1\n 0.0 1.0 1.2\n"))


def test_invalid_header_counts():
    with pytest.raises(ValueError):
        parse_band_header(["# NKPTS & NBANDS: 0 4", "# Band-Index 1"])
    assert parse_band_header(["# NKPTS & NBANDS: x", "# NKPTS & NBANDS: 10 3"]) == (10, 3)


def test_no_bands(band_file):
    with pytest.raises(ValueError, match="No band data"):
        analyze_band_file(band_file("# NKPTS & NBANDS: 4 2\n"))


def test_missing_file(tmp_path):
    with pytest.raises(OSError):
        analyze_band_file(str(tmp_path / "missing.dat"))


def test_bands_command(band_file, capsys):
    path = band_file(SPLIT_BANDS)

    main(['bands', path, '-v'])
    out = capsys.readouterr().out
    assert "RESULT: ALTERMAGNET (BY BANDS)!" in out
    assert "Found in band 1 at k-point index 1" in out

    main(['bands', path, '--band-threshold', '0.1'])
    assert "RESULT: NOT ALTERMAGNET (BY BANDS)" in capsys.readouterr().out


def test_bands_command_reports_errors(band_file, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(['bands', band_file("no header here\n")])
    assert excinfo.value.code == 1
    assert "Error: Could not find NKPTS & NBANDS header" in capsys.readouterr().out
