"""Paging through search result bundles"""

import asyncio
import dataclasses
import re
import types
import urllib.parse
from collections.abc import Iterable, Mapping

from fhirkit.http import HttpClient, RequestOptions

# HAPI-style paging parameters: the search session id, the offset into it, and the page size.
# Servers treat all of these as opaque cursors, we just replay them.
DEFAULT_PAGING_PARAMS = ("_getpages", "_getpagesoffset", "_count")

# Servers are inconsistent about spelling, especially "prev" vs "previous"
NEXT_RELATION = re.compile("next", re.IGNORECASE)
PREVIOUS_RELATION = re.compile("prev(ious)?", re.IGNORECASE)
SELF_RELATION = re.compile("self", re.IGNORECASE)


def find_link(bundle: dict | None, relation: re.Pattern) -> dict | None:
    """Returns the first link in the bundle with a matching relation (or None, even if there are no links)"""
    for link in (bundle or {}).get("link") or []:
        if relation.fullmatch(link.get("relation") or "") and link.get("url"):
            return link
    return None


@dataclasses.dataclass(frozen=True)
class PaginationState:
    """A snapshot of one search session: the last bundle seen and the paging cursors to replay"""

    current_results: dict | None
    params: Mapping[str, str]
    base_url: str


class Pagination:
    """
    Tracks where we are in a paged search, so that callers can move around in it.

    Create one of these per search -- it's stateful and not meant to be shared.
    Calls on one instance are serialized, so overlapping navigation just happens in order
    and whichever call finishes last determines the final state.

    Every navigation method can either use the current state (after initialize()) or take a
    bundle argument, which re-initializes from that bundle first. The former is the usual way.
    """

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str | None = None,
        param_names: Iterable[str] = DEFAULT_PAGING_PARAMS,
        offset_param: str = "_getpagesoffset",
        count_param: str = "_count",
    ):
        """
        :param http: transport to request pages with
        :param base_url: where go_to_page() sends requests (defaults to the transport's base URL)
        :param param_names: query parameters to track between pages
        :param offset_param: which tracked parameter holds the result offset
        :param count_param: which tracked parameter holds the page size
        """
        self._http = http
        self._base_url = base_url or http.base_url
        self._param_names = tuple(param_names)
        if offset_param not in self._param_names:
            self._param_names += (offset_param,)
        if count_param not in self._param_names:
            self._param_names += (count_param,)
        self._offset_param = offset_param
        self._count_param = count_param

        self._state: PaginationState | None = None
        self._lock = asyncio.Lock()

    def __copy__(self):
        raise TypeError("Pagination objects track a single search and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Pagination objects track a single search and cannot be copied")

    @property
    def state(self) -> PaginationState | None:
        return self._state

    @property
    def current_results(self) -> dict | None:
        return self._state and self._state.current_results

    @property
    def params(self) -> Mapping[str, str]:
        return self._state.params if self._state else types.MappingProxyType({})

    def initialize(self, bundle: dict) -> PaginationState:
        """
        Starts tracking a new bundle, replacing any previous state.

        Paging parameters are pulled from whichever of the next, previous, or self links shows up first.
        """
        link = (
            find_link(bundle, NEXT_RELATION)
            or find_link(bundle, PREVIOUS_RELATION)
            or find_link(bundle, SELF_RELATION)
        )
        params = self._extract_params(link["url"]) if link else {}
        self._state = PaginationState(bundle, types.MappingProxyType(params), self._base_url)
        return self._state

    async def next_page(
        self, bundle: dict | None = None, *, options: RequestOptions | None = None
    ) -> dict | None:
        """Returns the next page of results, or None if there isn't one"""
        return await self._follow(NEXT_RELATION, bundle, options)

    async def prev_page(
        self, bundle: dict | None = None, *, options: RequestOptions | None = None
    ) -> dict | None:
        """Returns the previous page of results, or None if there isn't one"""
        return await self._follow(PREVIOUS_RELATION, bundle, options)

    async def current_page(
        self, bundle: dict | None = None, *, options: RequestOptions | None = None
    ) -> dict | None:
        """Re-requests the current page of results (via its self link), or None if there is no such link"""
        return await self._follow(SELF_RELATION, bundle, options)

    async def go_to_page(
        self, page: int, bundle: dict | None = None, *, options: RequestOptions | None = None
    ) -> dict:
        """
        Jumps to an arbitrary page (counting from 1), by rebuilding the paging URL with a new offset.

        Raises ValueError if the page number is bad or the page size was never seen.
        """
        if page < 1:
            raise ValueError(f"Page numbers start at 1, not {page}")

        async with self._lock:
            state = self._prepare(bundle)

            count = state.params.get(self._count_param)
            try:
                page_size = int(count)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Cannot jump to page {page} without a valid page size") from exc

            params = dict(state.params)
            params[self._offset_param] = str((page - 1) * page_size)
            query = urllib.parse.urlencode(
                [(name, params[name]) for name in self._param_names if name in params]
            )
            return await self._fetch(f"{self._base_url.rstrip('/')}/?{query}", options)

    ###################################################################################################################
    #
    # Helpers
    #
    ###################################################################################################################

    def _prepare(self, bundle: dict | None) -> PaginationState:
        if bundle is not None:
            return self.initialize(bundle)
        if self._state is None:
            raise RuntimeError("Pagination must be initialized with a bundle before navigating")
        return self._state

    async def _follow(
        self, relation: re.Pattern, bundle: dict | None, options: RequestOptions | None
    ) -> dict | None:
        async with self._lock:
            state = self._prepare(bundle)
            link = find_link(state.current_results, relation)
            if not link:
                return None
            return await self._fetch(link["url"], options)

    async def _fetch(self, url: str, options: RequestOptions | None) -> dict:
        results = await self._http.get(url, options)

        # Whatever cursors we just asked for now describe where we are
        params = dict(self._state.params)
        params.update(self._extract_params(url))
        self._state = PaginationState(results, types.MappingProxyType(params), self._base_url)
        return results

    def _extract_params(self, url: str) -> dict[str, str]:
        query = urllib.parse.parse_qs(urllib.parse.urlsplit(url).query, keep_blank_values=True)
        return {name: query[name][0] for name in self._param_names if name in query}
