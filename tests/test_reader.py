import pytest

from trace_normalizer.reader import (
    DelimitedTraceReader,
    TraceParseError,
    decode_trace_bytes,
    detect_delimiter,
    parse_trace_text,
)


@pytest.mark.parametrize(
    "text",
    [
        "1,2,3\n4,5,6\n",
        "1;2;3\n4;5;6\n",
        "1\t2\t3\n4\t5\t6\n",
        "1 2 3\n4  5 6\n",
        "1|2|3\n4|5|6\n",
    ],
)
def test_parse_delimiters(text):
    assert parse_trace_text(text) == [[1, 2, 3], [4, 5, 6]]


def test_parse_skips_blank_and_comment_lines():
    text = "# time,value\n\n10,20\n   \n-3,+4\n"
    assert parse_trace_text(text) == [[10, 20], [-3, 4]]


def test_parse_keeps_ragged_rows():
    assert parse_trace_text("1,2,3\n4\n") == [[1, 2, 3], [4]]


def test_parse_rejects_non_integers():
    with pytest.raises(TraceParseError, match="Line 2"):
        parse_trace_text("1,2\n3,4.5\n")


def test_single_column_uses_whitespace_fallback():
    assert detect_delimiter(["1", "2", "3"]) is None
    assert parse_trace_text("1\n2\n3\n") == [[1], [2], [3]]


def test_decode_strips_bom_and_crlf():
    raw = b"\xef\xbb\xbf1,2\r\n3,4\r\n"
    assert decode_trace_bytes(raw) == "1,2\n3,4\n"


def test_reader_success(tmp_path):
    path = tmp_path / "run.trace"
    path.write_bytes(b"10,3\r\n4,5\r\n")
    result = DelimitedTraceReader().read_input(path)
    assert result.success
    assert result.data == [[10, 3], [4, 5]]


def test_reader_missing_file(tmp_path):
    result = DelimitedTraceReader().read_input(tmp_path / "missing.trace")
    assert not result.success
    assert result.error


def test_reader_unparseable_file(tmp_path):
    path = tmp_path / "run.trace"
    path.write_text("time,value\n1,2\n")
    result = DelimitedTraceReader().read_input(str(path))
    assert not result.success
    assert "not an integer" in result.error


def test_decode_undecodable_bytes_does_not_raise():
    text = decode_trace_bytes(b"\x81\xff\xfe\x00\xc3\x28\xa0\xa1" * 64)
    with pytest.raises(TraceParseError):
        parse_trace_text(text)
