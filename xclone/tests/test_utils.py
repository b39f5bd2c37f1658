import pytest

from xclone.utils.file_upload import DOCUMENT, GIF, IMAGE, VIDEO, media_kind
from xclone.utils.pagination import pagination_meta
from xclone.utils.security import generate_otp, slugify, username_base, username_candidates


def test_generate_otp():
    otp = generate_otp(6)
    assert len(otp) == 6
    assert otp.isdigit()


@pytest.mark.parametrize("full_name, email, expected", [
    ("Alice Smith", "a@example.com", "alicesmith"),
    ("  Élan ", "elan.vital@example.com", "lan"),
    ("!!!", "jane.doe@example.com", "janedoe"),
    ("", "???@example.com", "user"),
])
def test_username_base(full_name, email, expected):
    assert username_base(full_name, email) == expected


def test_username_candidates_start_with_base():
    candidates = username_candidates("bob")
    assert candidates[0] == "bob"
    assert all(c.startswith("bob") for c in candidates)
    assert len(candidates) == 3


@pytest.mark.parametrize("name, slug", [
    ("Python Devs", "python-devs"),
    ("  C++ & Rust!! ", "c-rust"),
    ("***", ""),
])
def test_slugify(name, slug):
    assert slugify(name) == slug


def test_media_kind():
    assert media_kind("image/png") == IMAGE
    assert media_kind("image/gif") == GIF
    assert media_kind("video/mp4") == VIDEO
    assert media_kind("application/pdf") == DOCUMENT
    assert media_kind("application/x-msdownload") is None
    assert media_kind(None) is None


def test_pagination_meta():
    assert pagination_meta(1, 10, 0) == {
        "current_page": 1,
        "total_pages": 0,
        "total": 0,
        "has_next_page": False,
        "has_prev_page": False,
    }
    meta = pagination_meta(2, 10, 25)
    assert meta["total_pages"] == 3
    assert meta["has_next_page"] is True
    assert meta["has_prev_page"] is True
