import pytest

from extractor.stages.parser import extract_emails, is_valid_email, merge_emails


@pytest.mark.unit
class TestExtractEmails:
    def test_plain_text(self):
        assert extract_emails("<p>Contact: sales@example.com</p>") == ["sales@example.com"]

    def test_lowercased_and_deduplicated_in_discovery_order(self):
        html = "<p>Info@Acme.com</p><p>jobs@acme.com</p><p>INFO@acme.com</p>"
        assert extract_emails(html) == ["info@acme.com", "jobs@acme.com"]

    def test_image_filenames_are_not_emails(self):
        html = '<img src="/static/logo@2x.png"><img srcset="hero@3x.webp 3x"><p>hello@acme.com</p>'
        assert extract_emails(html) == ["hello@acme.com"]

    def test_modern_image_formats_are_not_emails(self):
        html = '<img src="/img/hero@2x.avif"><img src="/img/shot@3x.heic"><img src="scan@2x.tiff">'
        assert extract_emails(html) == []

    def test_json_escaped_markup(self):
        html = (
            '<script>window.__DATA__ = "\\u003ca href=\\u0022mailto:sales@acme.io\\u0022'
            '\\u003esales@acme.io\\u003c/a\\u003e";</script>'
        )
        assert extract_emails(html) == ["sales@acme.io"]

    def test_escape_residue_without_backslash(self):
        assert extract_emails("<p>u003esupport@acme.io</p>") == ["support@acme.io"]

    def test_run_on_word_after_address(self):
        assert extract_emails("<p>Email:sales@acme.com.Phone: 555-0100</p>") == ["sales@acme.com"]
        assert extract_emails("<p>Jane.Doe@Mail.Acme.Com</p>") == ["jane.doe@mail.acme.com"]

    def test_mailto_with_query(self):
        html = '<a href="mailto:Support@Acme.com?subject=Hi">Write to us</a>'
        assert extract_emails(html) == ["support@acme.com"]

    def test_url_encoded_mailto(self):
        html = '<a href="mailto:%20team@acme.com">Team</a>'
        assert extract_emails(html) == ["team@acme.com"]

    def test_attributes_and_meta(self):
        html = (
            '<meta name="contact" content="press@acme.com">'
            '<span data-email="billing@acme.com"></span>'
            '<input type="email" value="orders@acme.com">'
        )
        assert set(extract_emails(html)) == {"press@acme.com", "billing@acme.com", "orders@acme.com"}

    def test_json_ld(self):
        html = '<script type="application/ld+json">{"@type": "Organization", "contactPoint": {"email": "hq@acme.com"}}</script>'
        assert extract_emails(html) == ["hq@acme.com"]

    def test_obfuscated_text(self):
        html = "<p>Reach us at info [at] acme [dot] com</p>"
        assert extract_emails(html) == ["info@acme.com"]

    def test_system_and_placeholder_addresses_are_dropped(self):
        html = (
            "<p>noreply@acme.com</p><p>mailer-daemon@acme.com</p>"
            "<p>you@yourdomain.com</p><p>abc123@sentry.io</p><p>x@o123.ingest.sentry.io</p>"
            "<p>real@acme.com</p>"
        )
        assert extract_emails(html) == ["real@acme.com"]

    def test_empty_input(self):
        assert extract_emails("") == []
        assert extract_emails("<html><body>No contact here</body></html>") == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "email,valid",
    [
        ("sales@example.com", True),
        ("first.last@sub.acme.co.uk", True),
        ("a@b.c", False),
        (".dot@acme.com", False),
        ("double..dot@acme.com", False),
        ("name@acme..com", False),
        ("icon@2x.svg", False),
        ("bundle@1.2.3.js", False),
        ("x" * 250 + "@acme.com", False),
    ],
)
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


@pytest.mark.unit
def test_merge_emails_keeps_order():
    assert merge_emails(["a@acme.com"], ["B@acme.com", "a@acme.com"]) == ["a@acme.com", "b@acme.com"]
