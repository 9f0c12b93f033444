import pytest

from domain.common.exceptions import InvalidSlugException
from domain.shared_file import LinkVariant, SlugPolicy
from domain.shared_file.slug import MAX_SLUG_LENGTH


strict = SlugPolicy()
permissive = SlugPolicy(variant=LinkVariant.FILENAME)


@pytest.mark.parametrize("candidate", ["My_File", "report@2024", "", "UPPER", "with space", "a" * 101])
def test_strict_rejects_bad_slugs(candidate):
    with pytest.raises(InvalidSlugException):
        strict.validate(candidate)


@pytest.mark.parametrize("candidate", ["report-2024", "q4-report", "a", "a" * MAX_SLUG_LENGTH])
def test_strict_accepts_good_slugs(candidate):
    strict.validate(candidate)


def test_permissive_accepts_unicode_and_filename_punctuation():
    permissive.validate("Résumé_2024.pdf")
    permissive.validate("报告-最终版.docx")


@pytest.mark.parametrize("candidate", ["..", ".", "a/b", "has space.txt", ""])
def test_permissive_rejects(candidate):
    with pytest.raises(InvalidSlugException):
        permissive.validate(candidate)


def test_invalid_slug_carries_reason():
    with pytest.raises(InvalidSlugException) as exc_info:
        strict.validate("report@2024")
    assert exc_info.value.details["slug"] == "report@2024"
    assert exc_info.value.field == "slug"


def test_split_filename_drops_extension_in_slug_variant():
    assert strict.split_filename("My Vacation Photos.png") == ("my-vacation-photos", "")
    assert strict.split_filename("__Hello   World__.tar.gz") == ("hello-world-tar", "")


def test_split_filename_keeps_extension_in_filename_variant():
    assert permissive.split_filename("My Vacation Photos.PNG") == ("my-vacation-photos", ".png")
    assert permissive.split_filename("README") == ("readme", "")


def test_compose_truncates_base_and_keeps_room_for_suffix():
    base = "x" * 200
    composed = strict.compose(base, "", "abcd")
    assert composed.endswith("-abcd")
    assert len(composed) <= MAX_SLUG_LENGTH
    strict.validate(composed)

    with_ext = permissive.compose(base, ".jpeg", "abcd")
    assert with_ext.endswith("-abcd.jpeg")
    assert len(with_ext) <= MAX_SLUG_LENGTH


def test_min_length_depends_on_variant():
    assert strict.min_derived_length == 3
    assert permissive.min_derived_length == 1
    assert strict.fallback("deadbeef") == "file-deadbeef"
