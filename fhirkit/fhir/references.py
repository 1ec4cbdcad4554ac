"""Parsing and building FHIR reference strings"""

import dataclasses
import re
import urllib.parse

from fhirkit import errors

# See https://www.hl7.org/fhir/references.html#literal for the grammar these follow.
RESOURCE_TYPE_REGEX = re.compile("[A-Za-z]+")
ID_REGEX = re.compile(r"[A-Za-z0-9\-.]{1,64}")

# The relative tail of a literal reference: Type/id with an optional /_history/version
RELATIVE_REFERENCE_REGEX = re.compile(
    r"(?P<type>[A-Za-z]+)/(?P<id>[A-Za-z0-9\-.]{1,64})"
    r"(?:/_history/(?P<version>[A-Za-z0-9\-.]{1,64}))?"
)
# The base URL is greedy, so that we peel off the longest possible server prefix
ABSOLUTE_REFERENCE_REGEX = re.compile(
    rf"(?P<base_url>https?://.+)/+{RELATIVE_REFERENCE_REGEX.pattern}"
)
URL_SCHEME_REGEX = re.compile(r"https?://", re.IGNORECASE)


@dataclasses.dataclass(frozen=True)
class ParsedReference:
    """The pieces of a literal reference like http://example.com/fhir/Patient/123/_history/2"""

    resource_type: str
    id: str
    base_url: str | None = None  # only set for absolute references, never with a trailing slash
    version: str | None = None

    @property
    def relative(self) -> str:
        """Type/id, without base URL or version"""
        return f"{self.resource_type}/{self.id}"


def is_contained_reference(reference: str) -> bool:
    return reference.startswith("#")


def is_urn_reference(reference: str) -> bool:
    return reference.lower().startswith("urn:")


def is_absolute_reference(reference: str) -> bool:
    return bool(URL_SCHEME_REGEX.match(reference))


def parse_reference(reference: str) -> ParsedReference:
    """
    Splits a literal reference into its base URL (if present), type, id, and version (if present).

    Examples:
    - Patient/123 -> (None, Patient, 123)
    - https://example.com/fhir/Patient/123 -> (https://example.com/fhir, Patient, 123)
    - Patient/123/_history/4 -> (None, Patient, 123, version 4)

    Contained (#123) and bundle-internal (urn:uuid:...) references are not literal references
    and are rejected here -- they only make sense next to the document that holds them.

    Raises InvalidReference if the reference could not be understood
    """
    if not isinstance(reference, str) or not reference:
        raise errors.InvalidReference(f'"{reference}" is not a recognized FHIR reference')

    base_url = None
    if is_absolute_reference(reference):
        # Case-insensitive scheme, but the regexes expect lowercase
        scheme, rest = reference.split("://", 1)
        match = ABSOLUTE_REFERENCE_REGEX.fullmatch(f"{scheme.lower()}://{rest}")
        if not match:
            raise errors.InvalidReference(f'"{reference}" is not a recognized FHIR reference')
        base_url = match["base_url"].rstrip("/")
        if not urllib.parse.urlsplit(base_url).netloc:
            raise errors.InvalidReference(f'"{reference}" does not have a valid server URL')
    else:
        match = RELATIVE_REFERENCE_REGEX.fullmatch(reference)
        if not match:
            raise errors.InvalidReference(f'"{reference}" is not a recognized FHIR reference')

    return ParsedReference(
        resource_type=match["type"],
        id=match["id"],
        base_url=base_url,
        version=match["version"],
    )


def format_reference(
    resource_type: str,
    resource_id: str,
    *,
    base_url: str | None = None,
    version: str | None = None,
) -> str:
    """
    Builds a literal reference string, the inverse of parse_reference().

    Raises InvalidReference if any piece would make an unparsable reference
    """
    if not resource_type or not RESOURCE_TYPE_REGEX.fullmatch(resource_type):
        raise errors.InvalidReference(f'Invalid resource type: "{resource_type}"')
    if not resource_id or not ID_REGEX.fullmatch(resource_id):
        raise errors.InvalidReference(f'Invalid resource ID: "{resource_id}"')
    if version is not None and not ID_REGEX.fullmatch(version):
        raise errors.InvalidReference(f'Invalid resource version: "{version}"')

    reference = f"{resource_type}/{resource_id}"
    if version is not None:
        reference += f"/_history/{version}"
    if base_url:
        reference = f"{base_url.rstrip('/')}/{reference}"
    return reference
