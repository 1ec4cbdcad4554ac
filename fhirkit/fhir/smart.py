"""Finding SMART OAuth endpoints advertised by a FHIR server"""

import dataclasses
import logging

import httpx

SMART_OAUTH_URIS = "http://fhir-registry.smarthealthit.org/StructureDefinition/oauth-uris"


@dataclasses.dataclass
class SmartAuthMetadata:
    """The OAuth2 endpoints a SMART client needs (any of which a server might not advertise)"""

    authorize_url: httpx.URL | None = None
    token_url: httpx.URL | None = None
    register_url: httpx.URL | None = None
    manage_url: httpx.URL | None = None


def _parse_url(value: str | None) -> httpx.URL | None:
    if not value:
        return None
    try:
        return httpx.URL(value)
    except httpx.InvalidURL:
        logging.warning("Ignoring invalid SMART endpoint URL: %s", value)
        return None


def auth_from_capability(capability_statement: dict) -> SmartAuthMetadata:
    """
    Reads SMART OAuth URIs from the security section of a CapabilityStatement.

    See http://docs.smarthealthit.org/authorization/conformance-statement/ for details.

    Servers get this wrong in all sorts of ways, so a malformed statement just gives back
    whatever we could find.
    """
    metadata = SmartAuthMetadata()
    fields = {
        "authorize": "authorize_url",
        "token": "token_url",
        "register": "register_url",
        "manage": "manage_url",
    }

    for rest in capability_statement.get("rest") or []:
        extensions = (rest.get("security") or {}).get("extension") or []
        uris = next((ext for ext in extensions if ext.get("url") == SMART_OAUTH_URIS), None)
        if uris is None:
            logging.warning("No SMART OAuth URIs found in a capability statement rest entry")
            continue

        for ext in uris.get("extension") or []:
            if field := fields.get(ext.get("url")):
                setattr(metadata, field, _parse_url(ext.get("valueUri")))

    return metadata


def auth_from_well_known(smart_configuration: dict) -> SmartAuthMetadata:
    """
    Reads SMART OAuth URIs from a .well-known/smart-configuration document.

    See https://hl7.org/fhir/smart-app-launch/conformance.html for details.
    """
    return SmartAuthMetadata(
        authorize_url=_parse_url(smart_configuration.get("authorization_endpoint")),
        token_url=_parse_url(smart_configuration.get("token_endpoint")),
        register_url=_parse_url(smart_configuration.get("registration_endpoint")),
        manage_url=_parse_url(smart_configuration.get("management_endpoint")),
    )
