"""Client that talks to a FHIR server"""

import urllib.parse
from collections.abc import Mapping
from typing import Any

import httpx

from fhirkit.fhir import resolver, smart
from fhirkit.fhir.pagination import NEXT_RELATION, PREVIOUS_RELATION, Pagination, find_link
from fhirkit.http import HttpClient, RequestOptions


class FhirClient:
    """
    Issues FHIR REST interactions against one server.

    Use this as a context manager (like you would an httpx.AsyncClient instance).

    Example:
        async with FhirClient("https://example.com/fhir") as client:
            bundle = await client.search("Patient", {"gender": "female"})
            pages = client.pagination()
            pages.initialize(bundle)
            page_two = await pages.next_page()
            practitioner = await client.resolve("#p1", context=some_resource)
    """

    def __init__(
        self,
        url: str,
        *,
        custom_headers: dict | None = None,
        bearer_token: str | None = None,
        session: httpx.AsyncClient | None = None,
        timeout: float = 300,
    ):
        """
        :param url: base URL of the FHIR server
        :param custom_headers: headers to send with every request
        :param bearer_token: an OAuth2 access token for the server
        :param session: an httpx client to share with other FhirClients (we won't close it)
        :param timeout: seconds to wait on the server
        """
        self.http = HttpClient(
            url,
            custom_headers=custom_headers,
            bearer_token=bearer_token,
            session=session,
            timeout=timeout,
        )
        self._resolver = resolver.ReferenceResolver(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    @property
    def base_url(self) -> str:
        return self.http.base_url

    def for_server(self, url: str) -> "FhirClient":
        """
        Returns a client for a different server, sharing our connection pool.

        Our own credentials and custom headers are not carried over.
        """
        return FhirClient(url, session=self.http.session)

    ###################################################################################################################
    #
    # Server metadata
    #
    ###################################################################################################################

    async def capability_statement(self, *, options: RequestOptions | None = None) -> dict:
        return await self.http.get("metadata", options)

    async def smart_auth_metadata(
        self, *, options: RequestOptions | None = None
    ) -> smart.SmartAuthMetadata:
        """Finds the SMART OAuth endpoints listed in the server's CapabilityStatement"""
        return smart.auth_from_capability(await self.capability_statement(options=options))

    async def smart_configuration(
        self, *, options: RequestOptions | None = None
    ) -> smart.SmartAuthMetadata:
        """Finds the SMART OAuth endpoints listed in the server's .well-known/smart-configuration"""
        options = dict(options or {})
        options["headers"] = {"Accept": "application/json", **(options.get("headers") or {})}
        return smart.auth_from_well_known(
            await self.http.get(".well-known/smart-configuration", options)
        )

    ###################################################################################################################
    #
    # REST interactions
    #
    ###################################################################################################################

    async def read(
        self, resource_type: str, resource_id: str, *, options: RequestOptions | None = None
    ) -> dict:
        return await self.http.get(f"{resource_type}/{resource_id}", options)

    async def vread(
        self,
        resource_type: str,
        resource_id: str,
        version: str,
        *,
        options: RequestOptions | None = None,
    ) -> dict:
        return await self.http.get(f"{resource_type}/{resource_id}/_history/{version}", options)

    async def search(
        self,
        resource_type: str,
        params: Mapping[str, Any] | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> dict:
        """
        Searches for resources, returning the first page of results as a Bundle.

        :param resource_type: the resource to search, like "Observation"
        :param params: search parameters (a list value becomes a repeated parameter)
        """
        path = resource_type
        if params:
            path += "?" + urllib.parse.urlencode(params, doseq=True)
        return await self.http.get(path, options)

    async def create(
        self, resource_type: str, body: dict, *, options: RequestOptions | None = None
    ) -> dict:
        return await self.http.post(resource_type, body, options)

    async def update(
        self,
        resource_type: str,
        resource_id: str,
        body: dict,
        *,
        options: RequestOptions | None = None,
    ) -> dict:
        return await self.http.put(f"{resource_type}/{resource_id}", body, options)

    async def patch(
        self,
        resource_type: str,
        resource_id: str,
        json_patch: list[dict],
        *,
        options: RequestOptions | None = None,
    ) -> dict:
        """Applies a JSON Patch (RFC 6902) document to a resource"""
        return await self.http.patch(f"{resource_type}/{resource_id}", json_patch, options)

    async def delete(
        self, resource_type: str, resource_id: str, *, options: RequestOptions | None = None
    ) -> dict:
        return await self.http.delete(f"{resource_type}/{resource_id}", options)

    ###################################################################################################################
    #
    # References and paging
    #
    ###################################################################################################################

    async def resolve(
        self,
        reference: str,
        context: Any = None,
        *,
        options: RequestOptions | None = None,
    ) -> dict:
        """
        Resolves a reference into a resource.

        If a bundle context is given, its entries are checked before asking the server.
        If a resource context is given, #id references are found among its contained resources.
        """
        return await self._resolver.resolve(reference, context, options=options)

    async def next_page(
        self, bundle: dict, *, options: RequestOptions | None = None
    ) -> dict | None:
        """Follows a bundle's next link, without tracking paging state (None if no such page)"""
        link = find_link(bundle, NEXT_RELATION)
        return await self.http.get(link["url"], options) if link else None

    async def prev_page(
        self, bundle: dict, *, options: RequestOptions | None = None
    ) -> dict | None:
        """Follows a bundle's previous link, without tracking paging state (None if no such page)"""
        link = find_link(bundle, PREVIOUS_RELATION)
        return await self.http.get(link["url"], options) if link else None

    def pagination(self, **kwargs) -> Pagination:
        """Starts a new paging session (see Pagination for keyword arguments)"""
        return Pagination(self.http, **kwargs)
