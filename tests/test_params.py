from pathlib import Path

import pytest

from py_agile.exceptions import ConfigurationError, ParamFileError
from py_agile.params import (ParameterDictionary, is_meta_key, parse_param_string, read_param_file,
                             resolve_parameters)


class TestParameterDictionary:

    def test_reassignment_keeps_position(self):
        params = ParameterDictionary()
        params['A'] = '1'
        params['B'] = 'x'
        params['A'] = '2'
        assert list(params.items()) == [('A', '2'), ('B', 'x')]
        assert len(params) == 2

    def test_keys_and_values_are_stripped_strings(self):
        params = ParameterDictionary([(' PARP(82) ', 2.1)])
        assert params['PARP(82)'] == '2.1'

    def test_empty_key_rejected(self):
        with pytest.raises(ConfigurationError):
            ParameterDictionary()['  '] = '1'

    def test_meta_and_native_split(self):
        params = ParameterDictionary([('rg:beam1', 'p'), ('MSTP(51)', '7'), ('RG:Seed', '5')])
        assert list(params.meta().items()) == [('RG:BEAM1', 'p'), ('RG:SEED', '5')]
        assert params.native_items() == [('MSTP(51)', '7')]
        assert is_meta_key('Rg:Mom1')
        assert not is_meta_key('PTMIN')

    def test_dump_reparses_to_equal_dictionary(self, tmp_path):
        params = ParameterDictionary([('MSTP(51)', '10042'), ('PARP(82)', '2.1'), ('RG:Beam1', 'p')])
        dumped = tmp_path / 'dump.params'
        dumped.write_text(params.dump())
        assert read_param_file(dumped, [tmp_path]) == params


@pytest.mark.parametrize("text, expected", [
    ("A=1", ("A", "1")),
    ("MSTP(51) = 10042", ("MSTP(51)", "10042")),
    ("PTMIN 10.0", ("PTMIN", "10.0")),
    ("RG:Beam1=PROTON", ("RG:Beam1", "PROTON")),
])
def test_parse_param_string(text, expected):
    assert parse_param_string(text) == expected


@pytest.mark.parametrize("text", ["A=", "A", "", "=1"])
def test_parse_param_string_malformed(text):
    with pytest.raises(ConfigurationError):
        parse_param_string(text)


class TestParamFiles:

    def test_comments_blank_lines_and_both_forms(self, tmp_path):
        (tmp_path / 'run.params').write_text(
            "# tune\n"
            "\n"
            "MSTP(51) = 10042   # CTEQ\n"
            "PARP(82) 2.1\n"
            "MSTP(51) = 7\n"
        )
        params = read_param_file('run.params', [tmp_path])
        assert list(params.items()) == [('MSTP(51)', '7'), ('PARP(82)', '2.1')]

    def test_include_expanded_in_place(self, tmp_path):
        (tmp_path / 'common.params').write_text("A = 1\nB = 1\n")
        (tmp_path / 'run.params').write_text("B = 0\n@INCLUDE common.params\nC = 3\n")
        params = read_param_file(tmp_path / 'run.params', [tmp_path])
        assert list(params.items()) == [('B', '1'), ('A', '1'), ('C', '3')]

    def test_include_resolved_on_search_path(self, tmp_path):
        shared = tmp_path / 'shared'
        shared.mkdir()
        (shared / 'lhc.params').write_text("RG:Beam1 = p\n")
        run_dir = tmp_path / 'run'
        run_dir.mkdir()
        (run_dir / 'run.params').write_text("@include lhc.params\n")
        params = read_param_file(run_dir / 'run.params', [shared])
        assert params['RG:Beam1'] == 'p'

    def test_include_cycle(self, tmp_path):
        (tmp_path / 'a.params').write_text("@include b.params\n")
        (tmp_path / 'b.params').write_text("@include a.params\n")
        with pytest.raises(ConfigurationError, match="Recursive"):
            read_param_file(tmp_path / 'a.params', [tmp_path])

    def test_missing_file(self, tmp_path):
        with pytest.raises(ParamFileError) as excinfo:
            read_param_file('nowhere.params', [tmp_path])
        assert excinfo.value.path == 'nowhere.params'

    def test_missing_include(self, tmp_path):
        (tmp_path / 'run.params').write_text("@include nowhere.params\n")
        with pytest.raises(ParamFileError):
            read_param_file(tmp_path / 'run.params', [tmp_path])

    def test_binary_file(self, tmp_path):
        (tmp_path / 'bin.params').write_bytes(b'\xff\xfe\x00garbage')
        with pytest.raises(ParamFileError) as excinfo:
            read_param_file(tmp_path / 'bin.params', [tmp_path])
        assert "not a text file" in str(excinfo.value)

    def test_malformed_line(self, tmp_path):
        (tmp_path / 'bad.params').write_text("JUSTAKEY\n")
        with pytest.raises(ConfigurationError):
            read_param_file(tmp_path / 'bad.params', [tmp_path])


def test_resolve_parameters_precedence(tmp_path: Path):
    (tmp_path / 'one.params').write_text("A = 1\nB = 1\n")
    (tmp_path / 'two.params').write_text("B = 2\n")
    params = resolve_parameters(['one.params', 'two.params'], ['A=override', 'D=4'], [tmp_path])
    assert list(params.items()) == [('A', 'override'), ('B', '2'), ('D', '4')]
