import pytest

from review_portal.errors import ReviewValidationError
from review_portal.schemas.reviews import MAX_PHOTO_BYTES, PhotoAttachment
from review_portal.validation import validate_submission

VALID = {
    "author_name": "Jo Bloggs",
    "author_email": "jo@x.com",
    "rating": "5",
    "review_text": "Lovely team, would work with them again.",
}


def _submit(**overrides):
    return validate_submission(**{**VALID, **overrides})


def _fields(exc_info):
    return [error.field for error in exc_info.value.errors]


@pytest.mark.parametrize("rating", [1, 2, 3, 4, 5, "1", "5"])
def test_rating_in_range_is_accepted(rating):
    assert _submit(rating=rating).rating == int(rating)


@pytest.mark.parametrize("rating", [0, 6, -1, "abc", "4.5", "", None])
def test_rating_out_of_range_or_non_numeric_is_rejected(rating):
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(rating=rating)
    assert _fields(exc_info) == ["rating"]
    assert exc_info.value.errors[0].message == "Rating must be a number between 1 and 5"


@pytest.mark.parametrize("length", [10, 500, 1000])
def test_review_text_length_in_range_is_accepted(length):
    assert len(_submit(review_text="x" * length).review_text) == length


@pytest.mark.parametrize("length", [0, 9, 1001])
def test_review_text_length_out_of_range_is_rejected(length):
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(review_text="x" * length)
    assert _fields(exc_info) == ["review_text"]
    assert "Review text must be between 10 and 1000 characters" in exc_info.value.message


def test_review_text_is_trimmed_before_length_check():
    with pytest.raises(ReviewValidationError):
        _submit(review_text="   short    ")


def test_name_is_trimmed():
    assert _submit(author_name="  Jo  ").author_name == "Jo"


@pytest.mark.parametrize("name", ["J", "  J  ", "x" * 101, None])
def test_bad_name_is_rejected(name):
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(author_name=name)
    assert _fields(exc_info) == ["author_name"]


@pytest.mark.parametrize("email", ["not-an-email", "jo@", "@x.com", "", None])
def test_bad_email_is_rejected(email):
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(author_email=email)
    assert _fields(exc_info) == ["author_email"]


def test_email_domain_is_lower_cased():
    assert _submit(author_email="Jo@Mail.COM").author_email == "Jo@mail.com"


@pytest.mark.parametrize("email", ["jo@shop.test", "ann@mail.shop.test", "jo@example.com"])
def test_reserved_domains_are_syntactically_valid(email):
    assert _submit(author_email=email).author_email == email


def test_all_violations_are_collected_in_form_order():
    with pytest.raises(ReviewValidationError) as exc_info:
        validate_submission(
            author_name="J",
            author_email="nope",
            rating="9",
            review_text="Short",
            photo=PhotoAttachment(filename="a.pdf", content_type="application/pdf", content=b"%PDF"),
        )
    assert _fields(exc_info) == ["author_name", "author_email", "rating", "review_text", "photo"]


def test_image_photo_is_attached():
    photo = PhotoAttachment(filename="me.png", content_type="image/png", content=b"\x89PNG")
    assert _submit(photo=photo).photo == photo


def test_non_image_photo_is_rejected():
    photo = PhotoAttachment(filename="notes.txt", content_type="text/plain", content=b"hello")
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(photo=photo)
    assert exc_info.value.errors[0].message == "Only image files are allowed for photos"


def test_photo_over_five_mebibytes_is_rejected():
    photo = PhotoAttachment(filename="big.jpg", content_type="image/jpeg", content=b"0" * (MAX_PHOTO_BYTES + 1))
    with pytest.raises(ReviewValidationError) as exc_info:
        _submit(photo=photo)
    assert _fields(exc_info) == ["photo"]


def test_photo_of_exactly_five_mebibytes_is_accepted():
    photo = PhotoAttachment(filename="big.jpg", content_type="image/jpeg", content=b"0" * MAX_PHOTO_BYTES)
    assert _submit(photo=photo).photo.size == MAX_PHOTO_BYTES
