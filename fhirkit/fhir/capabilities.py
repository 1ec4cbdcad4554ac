"""Questions about what a server supports, answered from its CapabilityStatement"""

from typing import Any


class CapabilityTool:
    """
    Looks up interactions and search parameters in a CapabilityStatement.

    Only the "server" mode rest entry is consulted.
    """

    def __init__(self, capability_statement: dict):
        self.capability_statement = capability_statement

    def server_can(self, interaction: str) -> bool:
        """Whether a system-level interaction (like "transaction") is supported"""
        return self.support_for(capability_type="interaction", where={"code": interaction})

    def resource_can(self, resource_type: str, interaction: str) -> bool:
        """Whether an interaction (like "read") is supported for a resource type"""
        return self.support_for(
            resource_type=resource_type, capability_type="interaction", where={"code": interaction}
        )

    def server_search(self, search_param: str) -> bool:
        return self.support_for(capability_type="searchParam", where={"name": search_param})

    def resource_search(self, resource_type: str, search_param: str) -> bool:
        return self.support_for(
            resource_type=resource_type, capability_type="searchParam", where={"name": search_param}
        )

    def support_for(
        self,
        *,
        resource_type: str | None = None,
        capability_type: str,
        where: dict[str, str] | None = None,
    ) -> bool:
        """
        Checks for a capability, either server-wide or for one resource type.

        :param resource_type: resource to check, or None for server-wide capabilities
        :param capability_type: capability field to check, like "interaction" or "searchParam"
        :param where: a single key/value that one of the capability items must have (like {"code": "read"})
        """
        if resource_type:
            capabilities = self.resource_capabilities(resource_type)
        else:
            capabilities = self.server_capabilities()

        if not capabilities:
            return False

        capability = capabilities.get(capability_type)
        if where:
            key, value = next(iter(where.items()))
            return any(item.get(key) == value for item in capability or [])

        return capability is not None

    def interactions_for(self, resource_type: str) -> list[str]:
        resource = self.resource_capabilities(resource_type) or {}
        return [interaction["code"] for interaction in resource.get("interaction") or []]

    def search_params_for(self, resource_type: str) -> list[str]:
        resource = self.resource_capabilities(resource_type) or {}
        return [param["name"] for param in resource.get("searchParam") or []]

    def resource_capabilities(self, resource_type: str) -> dict | None:
        server = self.server_capabilities() or {}
        for resource in server.get("resource") or []:
            if resource.get("type") == resource_type:
                return resource
        return None

    def capability_contents(self, resource_type: str, capability_type: str) -> Any:
        resource = self.resource_capabilities(resource_type)
        return resource and resource.get(capability_type)

    def server_capabilities(self) -> dict | None:
        for rest in self.capability_statement.get("rest") or []:
            if rest.get("mode") == "server":
                return rest
        return None
