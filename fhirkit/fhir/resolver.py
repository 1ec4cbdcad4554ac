"""Resolving FHIR references into resources"""

import dataclasses
import logging
import urllib.parse
from typing import TYPE_CHECKING, Any

from fhirkit import errors
from fhirkit.fhir import references

if TYPE_CHECKING:
    from fhirkit.fhir.client import FhirClient  # pragma: no cover
    from fhirkit.http import RequestOptions  # pragma: no cover


@dataclasses.dataclass(frozen=True)
class BundleContext:
    """A Bundle whose entries may already hold the referenced resource"""

    bundle: dict

    @property
    def entries(self) -> list[dict]:
        return self.bundle.get("entry") or []

    @property
    def contained(self) -> list[dict]:
        return self.bundle.get("contained") or []


@dataclasses.dataclass(frozen=True)
class ContainingResource:
    """A resource that may carry inline resources, addressable as #id"""

    resource: dict

    @property
    def contained(self) -> list[dict]:
        return self.resource.get("contained") or []


ResolutionContext = BundleContext | ContainingResource | None


def make_context(context: Any) -> ResolutionContext:
    """Classifies a raw resource dict as the kind of context it is (wrapped contexts pass through)"""
    match context:
        case None | BundleContext() | ContainingResource():
            return context
        case {"resourceType": "Bundle"}:
            return BundleContext(context)
        case dict():
            return ContainingResource(context)
    raise TypeError(f"Cannot resolve references inside a {type(context).__name__}")


class ReferenceResolver:
    """
    Turns a reference string into the resource it points at.

    See https://www.hl7.org/fhir/references.html -- a reference can be an absolute URL,
    a URL relative to the server root, an internal #fragment, or (inside a bundle) a urn:uuid.

    Resolution happens in two phases:
    - first we look locally (contained resources or bundle entries), with no network calls
    - then, if that came up empty, we make exactly one request to a server
    """

    def __init__(self, client: "FhirClient"):
        self._client = client

    async def resolve(
        self,
        reference: str,
        context: Any = None,
        *,
        options: "RequestOptions | None" = None,
    ) -> dict:
        """
        Resolves a reference and returns the FHIR resource.

        :param reference: the "reference" field of a FHIR Reference
        :param context: an optional Bundle or containing resource to look inside first
        :param options: request options (like headers) for any network request
        :returns: the referenced resource
        """
        context = make_context(context)

        resource = self._try_local(reference, context)
        if resource is not None:
            return resource

        return await self._fetch_remote(reference, options)

    def _try_local(self, reference: str, context: ResolutionContext) -> dict | None:
        """Looks for the resource without touching the network, returning None if not found"""
        if references.is_contained_reference(reference):
            # A contained reference can only ever be resolved locally, so a miss is final
            return self._find_contained(reference, context)

        match context:
            case BundleContext():
                resource = self._find_in_bundle(reference, context)
                if resource is None:
                    logging.debug("%s is not in the bundle, will request it", reference)
                return resource

        return None

    @staticmethod
    def _find_contained(reference: str, context: ResolutionContext) -> dict:
        if context is not None:
            reference_id = reference[1:]
            for resource in context.contained:
                if resource.get("id") == reference_id:
                    return resource

        raise errors.UnresolvableContainedReference(reference)

    @staticmethod
    def _find_in_bundle(reference: str, context: BundleContext) -> dict | None:
        # A relative reference matches the tail of an absolute fullUrl, so we check both ways
        for entry in context.entries:
            full_url = entry.get("fullUrl") or ""
            if full_url == reference or full_url.endswith(f"/{reference}"):
                return entry.get("resource")
        return None

    async def _fetch_remote(self, reference: str, options: "RequestOptions | None") -> dict:
        # Validate before going to the network, rather than asking a server about nonsense
        parsed = references.parse_reference(reference)

        if parsed.base_url is None or self._is_own_server(reference):
            return await self._client.http.get(reference, options)

        # The reference lives on a different server, so talk to it directly
        other_server = self._client.for_server(parsed.base_url)
        if parsed.version:
            return await other_server.vread(
                parsed.resource_type, parsed.id, parsed.version, options=options
            )
        return await other_server.read(parsed.resource_type, parsed.id, options=options)

    def _is_own_server(self, reference: str) -> bool:
        # Scheme and host are case-insensitive, the path is not
        base = urllib.parse.urlsplit(self._client.base_url)
        ref = urllib.parse.urlsplit(reference)
        if (ref.scheme.lower(), ref.netloc.lower()) != (base.scheme.lower(), base.netloc.lower()):
            return False
        return ref.path.startswith(base.path.rstrip("/") + "/")
