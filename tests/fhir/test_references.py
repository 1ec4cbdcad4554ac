"""Tests for fhir/references.py"""

import ddt

from fhirkit import errors, fhir
from tests import utils


@ddt.ddt
class TestParseReference(utils.AsyncTestCase):
    """Tests for parse_reference()"""

    @ddt.data(
        ("Patient/123", None, "Patient", "123", None),
        ("Patient/123/_history/4", None, "Patient", "123", "4"),
        ("Observation/a-b.c", None, "Observation", "a-b.c", None),
        ("http://example.com/Patient/123", "http://example.com", "Patient", "123", None),
        (
            "https://example.com/fhir/r4/Patient/123",
            "https://example.com/fhir/r4",
            "Patient",
            "123",
            None,
        ),
        (
            "https://example.com/fhir/Patient/123/_history/2",
            "https://example.com/fhir",
            "Patient",
            "123",
            "2",
        ),
        # Extra slashes between base and tail are not part of the base
        (
            "https://example.com/fhir//Patient/123",
            "https://example.com/fhir",
            "Patient",
            "123",
            None,
        ),
        # Scheme is case-insensitive
        ("HTTPS://example.com/Patient/123", "https://example.com", "Patient", "123", None),
        # Base paths can look a lot like references themselves
        (
            "https://example.com/Patient/abc/fhir/Patient/123",
            "https://example.com/Patient/abc/fhir",
            "Patient",
            "123",
            None,
        ),
        ("Patient/" + "a" * 64, None, "Patient", "a" * 64, None),
    )
    @ddt.unpack
    def test_parse_successes(self, reference, base_url, resource_type, resource_id, version):
        parsed = fhir.parse_reference(reference)
        self.assertEqual(
            fhir.ParsedReference(
                resource_type=resource_type, id=resource_id, base_url=base_url, version=version
            ),
            parsed,
        )
        self.assertEqual(f"{resource_type}/{resource_id}", parsed.relative)

    @ddt.data(
        None,
        "",
        "Patient",
        "Patient/",
        "/Patient/123",
        "Patient/123/",
        "Patient/123/extra",
        "Patient/123/_history",
        "Patient/123/_history/",
        "Patient/abc_def",
        "Pat1ent/123",
        "Patient/" + "a" * 65,
        "Patient?identifier=http://example.com|123",  # conditional references are not literal
        "#p1",
        "urn:uuid:04121321-4af5-424c-a0e1-ed3aab1c349d",
        "ftp://example.com/Patient/123",
        "https://Patient/123",
        "https:///Patient/123",
        "https://?q/Patient/123",
    )
    def test_parse_failures(self, reference):
        with self.assertRaises(errors.InvalidReference):
            fhir.parse_reference(reference)

    def test_invalid_reference_is_a_value_error(self):
        with self.assertRaises(ValueError):
            fhir.parse_reference("nope")


@ddt.ddt
class TestFormatReference(utils.AsyncTestCase):
    """Tests for format_reference()"""

    @ddt.data(
        (("Patient", "123"), {}, "Patient/123"),
        (("Patient", "123"), {"version": "4"}, "Patient/123/_history/4"),
        (
            ("Patient", "123"),
            {"base_url": "https://example.com/fhir"},
            "https://example.com/fhir/Patient/123",
        ),
        (
            ("Patient", "123"),
            {"base_url": "https://example.com/fhir/"},
            "https://example.com/fhir/Patient/123",
        ),
        (
            ("Encounter", "e.1"),
            {"base_url": "http://example.com", "version": "2"},
            "http://example.com/Encounter/e.1/_history/2",
        ),
    )
    @ddt.unpack
    def test_format(self, args, kwargs, expected):
        self.assertEqual(expected, fhir.format_reference(*args, **kwargs))

    @ddt.data(
        ("Patient", "123", None, None),
        ("Patient", "123", None, "7"),
        ("Observation", "abc-def.1", "https://example.com/fhir/r4", None),
        ("Observation", "abc-def.1", "https://example.com/fhir/r4", "22"),
    )
    @ddt.unpack
    def test_format_then_parse(self, resource_type, resource_id, base_url, version):
        reference = fhir.format_reference(
            resource_type, resource_id, base_url=base_url, version=version
        )
        parsed = fhir.parse_reference(reference)
        self.assertEqual(
            (resource_type, resource_id, base_url, version),
            (parsed.resource_type, parsed.id, parsed.base_url, parsed.version),
        )

    @ddt.data(
        (("", "123"), {}, "Invalid resource type"),
        (("Pat ient", "123"), {}, "Invalid resource type"),
        (("Patient", ""), {}, "Invalid resource ID"),
        (("Patient", "a/b"), {}, "Invalid resource ID"),
        (("Patient", "123"), {"version": ""}, "Invalid resource version"),
    )
    @ddt.unpack
    def test_format_failures(self, args, kwargs, message):
        with self.assertRaisesRegex(errors.InvalidReference, message):
            fhir.format_reference(*args, **kwargs)


@ddt.ddt
class TestReferenceKinds(utils.AsyncTestCase):
    """Tests for the is_*_reference() helpers"""

    @ddt.data(
        ("#p1", True, False, False),
        ("urn:uuid:04121321-4af5-424c-a0e1-ed3aab1c349d", False, True, False),
        ("URN:oid:1.2.3", False, True, False),
        ("https://example.com/Patient/1", False, False, True),
        ("HTTP://example.com/Patient/1", False, False, True),
        ("Patient/1", False, False, False),
    )
    @ddt.unpack
    def test_kinds(self, reference, contained, urn, absolute):
        self.assertEqual(contained, fhir.is_contained_reference(reference))
        self.assertEqual(urn, fhir.is_urn_reference(reference))
        self.assertEqual(absolute, fhir.is_absolute_reference(reference))
