# Copyright (c) Yugabyte, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except
# in compliance with the License.  You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software distributed under the License
# is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express
# or implied.  See the License for the specific language governing permissions and limitations
# under the License.

import gzip
import io
import logging
import pathlib
import pytest

from stackdedup.common_util import read_file, write_file
from stackdedup.dedup_tool import FILTER_CONFIG_ENV_VAR, main


DUMP_LINES = [
    'goroutine 1 [chan receive]:',
    'main.foo(...)',
    '\t/a/b.go:10 +0x1',
    '',
    'goroutine 2 [chan receive]:',
    'main.foo(...)',
    '\t/a/b.go:10 +0x1',
    '',
    'goroutine 6 [idle]:',
    'runtime.park()',
    '\t/go/proc.go:1 +0x1',
]

EXPECTED_OUTPUT = '\n'.join([
    '(2 copies)',
    'goroutine 1 [chan receive]:',
    'main.foo(...)',
    '\t/a/b.go:10 +0x1',
    '',
]) + '\n'


def make_stdin(text: str) -> io.TextIOWrapper:
    return io.TextIOWrapper(io.BytesIO(text.encode('utf-8')), encoding='utf-8')


@pytest.fixture
def dump_path(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / 'goroutines.txt'
    write_file(DUMP_LINES, path)
    return path


def test_dedup_tool_prints_unique_stacks(
        dump_path: pathlib.Path, capsys: pytest.CaptureFixture) -> None:
    main([str(dump_path)])
    assert capsys.readouterr().out == EXPECTED_OUTPUT


def test_dedup_tool_reads_gzip_and_stdin(
        dump_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture,
        monkeypatch: pytest.MonkeyPatch) -> None:
    gz_path = tmp_path / 'goroutines.txt.gz'
    with gzip.open(str(gz_path), 'wt', encoding='utf-8') as gz_file:
        gz_file.write('goroutine 3 [chan receive]:\nmain.foo(...)\n\t/a/b.go:10 +0x1\n')
    monkeypatch.setattr('sys.stdin', make_stdin('\n'.join(DUMP_LINES)))

    main([str(gz_path), '-'])
    assert capsys.readouterr().out == EXPECTED_OUTPUT.replace(
        '(2 copies)\ngoroutine 1', '(3 copies)\ngoroutine 3')


def test_dedup_tool_writes_output_file(
        dump_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture) -> None:
    output_path = tmp_path / 'out.txt'
    main([str(dump_path), '--output', str(output_path)])
    assert read_file(output_path) == EXPECTED_OUTPUT
    assert capsys.readouterr().out == ''


def test_dedup_tool_no_filter(dump_path: pathlib.Path, capsys: pytest.CaptureFixture) -> None:
    main([str(dump_path), '--no_filter'])
    out = capsys.readouterr().out
    assert out.startswith(EXPECTED_OUTPUT)
    assert '(1 copies)\ngoroutine 6 [idle]:' in out


def test_dedup_tool_filter_config_from_env(
        dump_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture,
        monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / 'filter.yml'
    write_file(['ignore_reasons:', '  - equals: chan receive'], config_path)
    monkeypatch.setenv(FILTER_CONFIG_ENV_VAR, str(config_path))
    main([str(dump_path)])
    assert capsys.readouterr().out == ''


def test_dedup_tool_parse_error(
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture,
        caplog: pytest.LogCaptureFixture) -> None:
    bad_path = tmp_path / 'bad.txt'
    write_file(['goroutine x [idle]:'], bad_path)
    with caplog.at_level(logging.INFO):
        with pytest.raises(SystemExit) as exc_info:
            main([str(bad_path)])
    assert exc_info.value.code == 1
    assert 'goroutine x [idle]:' in caplog.text
    assert capsys.readouterr().out == ''


def test_dedup_tool_missing_file(
        dump_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([str(dump_path), str(tmp_path / 'nonexistent.txt')])
    assert exc_info.value.code == 1
    assert capsys.readouterr().out == ''


def test_dedup_tool_requires_input_paths(capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
    assert 'STACK_DUMP' in capsys.readouterr().err


CRLF_DUMP = (
    'goroutine 1 [chan receive]:\r\n'
    'main.foo(...)\r\n'
    '\t/a/b.go:10 +0x1\r\n'
    '\n'
    'goroutine 2 [select]:\r\n'
    'main.bar()\r\n'
    '\t/a/c.go:3 +0x1\r\n'
)

# Only "\n" separates lines, so every line keeps its trailing "\r".
CRLF_OUTPUT = (
    '(1 copies)\n'
    'goroutine 1 [chan receive]:\r\n'
    'main.foo(...)\r\n'
    '\t/a/b.go:10 +0x1\r\n'
    '\n'
    '(1 copies)\n'
    'goroutine 2 [select]:\r\n'
    'main.bar()\r\n'
    '\t/a/c.go:3 +0x1\r\n'
    '\n'
)


def test_dedup_tool_keeps_carriage_returns(
        tmp_path: pathlib.Path, capsys: pytest.CaptureFixture) -> None:
    dump_path = tmp_path / 'crlf.txt'
    with open(str(dump_path), 'wb') as dump_file:
        dump_file.write(CRLF_DUMP.encode('utf-8'))
    main([str(dump_path)])
    assert capsys.readouterr().out == CRLF_OUTPUT


def test_dedup_tool_keeps_carriage_returns_in_gzip_and_stdin(
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture,
        monkeypatch: pytest.MonkeyPatch) -> None:
    gz_path = tmp_path / 'crlf.txt.gz'
    with gzip.open(str(gz_path), 'wb') as gz_file:
        gz_file.write(CRLF_DUMP.encode('utf-8'))
    main([str(gz_path)])
    assert capsys.readouterr().out == CRLF_OUTPUT

    monkeypatch.setattr('sys.stdin', make_stdin(CRLF_DUMP))
    main(['-'])
    assert capsys.readouterr().out == CRLF_OUTPUT


def test_read_file_keeps_line_endings(tmp_path: pathlib.Path) -> None:
    path = tmp_path / 'mixed.txt'
    with open(str(path), 'wb') as output_file:
        output_file.write(b'a\r\nb\rc\n')
    assert read_file(path) == 'a\r\nb\rc\n'


def test_dedup_tool_invalid_filter_config_syntax(
        dump_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture,
        caplog: pytest.LogCaptureFixture) -> None:
    config_path = tmp_path / 'filter.yml'
    write_file(['ignore_reasons: [', '  - equals: x'], config_path)
    with pytest.raises(SystemExit) as exc_info:
        main([str(dump_path), '--filter_config', str(config_path)])
    assert exc_info.value.code == 1
    assert str(config_path) in caplog.text
    assert capsys.readouterr().out == ''
