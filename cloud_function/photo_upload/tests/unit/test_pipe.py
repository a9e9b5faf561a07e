import threading

import pytest

from ...pipe import BytePipe, PipeTimeout, UploadCancelled


def test_read_waits_for_full_size_until_eof():
    pipe = BytePipe()
    pipe.write(b"abc")
    pipe.write(b"def")
    pipe.close()

    assert pipe.read(4) == b"abcd"
    assert pipe.read(4) == b"ef"
    assert pipe.read(4) == b""


def test_reader_blocks_until_writer_supplies_data():
    pipe = BytePipe()
    result = []
    reader = threading.Thread(target=lambda: result.append(pipe.read(6)))
    reader.start()

    pipe.write(b"abc")
    pipe.write(b"defgh")
    reader.join(timeout=2)

    assert result == [b"abcdef"]


def test_abort_raises_on_reader_side():
    pipe = BytePipe()
    pipe.write(b"partial")
    pipe.abort(UploadCancelled("file too large"))

    with pytest.raises(UploadCancelled, match="file too large"):
        pipe.read(100)


def test_write_after_reader_closed_is_dropped():
    pipe = BytePipe()
    pipe.close_reader()

    assert pipe.write(b"ignored") is False
    assert pipe.reader_closed


def test_full_pipe_write_times_out():
    pipe = BytePipe(max_buffer=4)
    assert pipe.write(b"1234") is True

    with pytest.raises(PipeTimeout):
        pipe.write(b"5", timeout=0.05)


def test_blocked_writer_released_when_reader_closes():
    pipe = BytePipe(max_buffer=4)
    pipe.write(b"1234")
    result = []
    writer = threading.Thread(target=lambda: result.append(pipe.write(b"5678", timeout=2)))
    writer.start()

    pipe.close_reader()
    writer.join(timeout=2)

    assert result == [False]
