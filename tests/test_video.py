import pytest

from flowmap.video import parse_embed_url


@pytest.mark.parametrize("url, expected", [
    ("https://www.loom.com/share/abc123", "https://www.loom.com/embed/abc123"),
    ("https://loom.com/share/XyZ9?sid=1", "https://www.loom.com/embed/XyZ9"),
    ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
    ("https://youtu.be/a_b-c", "https://www.youtube.com/embed/a_b-c"),
    ("  https://youtu.be/xyz  ", "https://www.youtube.com/embed/xyz"),
    ("https://player.vimeo.com/embed/42", "https://player.vimeo.com/embed/42"),
])
def test_recognized_urls(url, expected):
    assert parse_embed_url(url) == expected


@pytest.mark.parametrize("url", [None, "", "   ", "https://example.com/video", "not a url", 42])
def test_unrecognized_input_gives_none(url):
    assert parse_embed_url(url) is None
