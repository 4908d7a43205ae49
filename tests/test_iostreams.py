import io
import sys

from kindkit.iostreams import IOStreams, standard_io_streams


def test_standard_streams_are_process_streams():
    streams = standard_io_streams()
    assert streams.in_ is sys.stdin
    assert streams.out is sys.stdout
    assert streams.err_out is sys.stderr


def test_standard_streams_write_to_process_output(capsys):
    streams = standard_io_streams()
    streams.out.write("to out\n")
    streams.err_out.write("to err\n")
    captured = capsys.readouterr()
    assert captured.out == "to out\n"
    assert captured.err == "to err\n"


def test_custom_streams_round_trip():
    streams = IOStreams(in_=io.StringIO("input data"), out=io.StringIO(), err_out=io.StringIO())
    streams.out.write(streams.in_.read())
    assert streams.out.getvalue() == "input data"
    assert streams.err_out.getvalue() == ""