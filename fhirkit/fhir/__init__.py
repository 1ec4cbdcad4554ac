"""Support for talking to FHIR servers & handling FHIR references"""

from .capabilities import CapabilityTool
from .client import FhirClient
from .pagination import DEFAULT_PAGING_PARAMS, Pagination, PaginationState, find_link
from .references import (
    ParsedReference,
    format_reference,
    is_absolute_reference,
    is_contained_reference,
    is_urn_reference,
    parse_reference,
)
from .resolver import BundleContext, ContainingResource, ReferenceResolver, make_context
from .smart import SmartAuthMetadata, auth_from_capability, auth_from_well_known
