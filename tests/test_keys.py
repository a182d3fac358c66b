import re

import pytest

from api.app.utils.keys import derive_keys, is_allowed_key, sanitize_base_name

T = 1700000000123


def test_derive_keys_sanitizes_and_prefixes():
    keys = derive_keys("My Photo!.png", T)
    assert keys.base == "My_Photo_"
    assert keys.full_key == f"full/{T}-My_Photo_.webp"
    assert keys.thumb_key == f"thumbnails/{T}-My_Photo_.webp"


def test_empty_name_defaults_to_image():
    keys = derive_keys("", T)
    assert keys.base == "image"
    assert keys.full_key == f"full/{T}-image.webp"
    assert derive_keys(None, T).base == "image"


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("vacation pic.jpg", "vacation_pic"),
        ("archive.tar.gz", "archive.tar"),
        ("no_extension", "no_extension"),
        (".hidden", ".hidden"),
        ("dir/sub/photo.jpeg", "photo"),
        ("C:\\Users\\me\\shot.png", "shot"),
        ("été  à la plage.heic", "_t_la_plage"),
        ("..", "image"),
        ("a..b.png", "a_b"),
        ("!!!.png", "_"),
    ],
)
def test_sanitize_base_name(filename, expected):
    assert sanitize_base_name(filename) == expected


def test_sanitized_names_only_contain_safe_characters():
    base = sanitize_base_name("<script>alert(1)</script>/../../etc/passwd.png")
    assert re.fullmatch(r"[A-Za-z0-9._-]+", base)
    assert ".." not in base


def test_owner_scoped_keys():
    keys = derive_keys("vacation pic.jpg", T, owner_id="user-42", suffix="abcd1234")
    assert keys.full_key == f"users/user-42/{T}-vacation_pic-abcd1234.full.webp"
    assert keys.thumb_key == f"users/user-42/{T}-vacation_pic-abcd1234.thumb.webp"


def test_owner_scoped_keys_get_random_suffix():
    first = derive_keys("a.png", T, owner_id="u1")
    second = derive_keys("a.png", T, owner_id="u1")
    assert re.fullmatch(rf"users/u1/{T}-a-[0-9a-f]{{8}}\.full\.webp", first.full_key)
    assert first.full_key != second.full_key


def test_owner_id_cannot_escape_users_prefix():
    keys = derive_keys("a.png", T, owner_id="../../full", suffix="00")
    assert keys.full_key.startswith("users/")
    assert ".." not in keys.full_key
    assert keys.full_key.count("/") == 2


def test_blank_owner_means_anonymous():
    assert derive_keys("a.png", T, owner_id="   ").full_key == f"full/{T}-a.webp"


def test_deterministic_without_owner():
    assert derive_keys("x.png", T) == derive_keys("x.png", T)


@pytest.mark.parametrize(
    "key, allowed",
    [
        ("full/1-a.webp", True),
        ("thumbnails/1-a.webp", True),
        ("users/u1/1-a-00.full.webp", True),
        ("full/../secrets.txt", False),
        ("other/1-a.webp", False),
        ("/full/1-a.webp", False),
        ("", False),
        (None, False),
        (123, False),
    ],
)
def test_is_allowed_key(key, allowed):
    assert is_allowed_key(key) is allowed


@pytest.mark.parametrize("filename, base", [("photo..jpg", "photo"), ("a..png", "a"), ("....png", "image")])
def test_trailing_dots_never_form_traversal_in_keys(filename, base):
    keys = derive_keys(filename, T)
    assert keys.base == base
    for key in (keys.full_key, keys.thumb_key):
        assert ".." not in key
        assert is_allowed_key(key)


def test_trailing_dots_in_owner_scoped_keys():
    keys = derive_keys("photo..jpg", T, owner_id="u1", suffix="00")
    assert keys.full_key == f"users/u1/{T}-photo-00.full.webp"
    assert is_allowed_key(keys.full_key)
