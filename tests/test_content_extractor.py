from __future__ import annotations

from unittest.mock import patch

from deepreport.tools.content_extractor import extract_main_content

PAGE = """
<html><head><title>Battery Report</title><script>var tracking = 1;</script></head>
<body>
<nav>Main menu</nav>
<article><h1>Solid state batteries</h1><p>{body}</p></article>
<footer>Copyright</footer>
</body></html>
"""


def test_plain_text_is_returned_as_is():
    extracted = extract_main_content("https://a.com/notes.txt", "line one\n\n\n\nline two", max_chars=1000)

    assert extracted.method == "raw"
    assert extracted.text == "line one\n\nline two"


def test_soup_fallback_strips_boilerplate():
    html = PAGE.format(body="Short body.")
    with patch("deepreport.tools.content_extractor._extract_with_trafilatura", return_value=""):
        extracted = extract_main_content("https://a.com", html, max_chars=1000)

    assert extracted.method == "soup"
    assert extracted.title == "Battery Report"
    assert "Solid state batteries" in extracted.text
    assert "tracking" not in extracted.text
    assert "Main menu" not in extracted.text


def test_trafilatura_result_is_preferred_when_substantial():
    article = "Energy density keeps improving. " * 20
    with patch("deepreport.tools.content_extractor._extract_with_trafilatura", return_value=article.strip()):
        extracted = extract_main_content("https://a.com", PAGE.format(body=article), max_chars=100000)

    assert extracted.method == "trafilatura"
    assert extracted.text == article.strip()


def test_text_is_truncated_to_max_chars():
    extracted = extract_main_content("https://a.com", "x" * 50, max_chars=10)
    assert extracted.text == "x" * 10 + "..."
