from pydantic import BaseModel, ConfigDict, Field

from publicip.address import AddressFamily


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str


class LookupResult(BaseModel):
    """The current public IP as reported by the IP information provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="An ID, which is only used internally to re-identify a lookup.")
    ip: str = Field(description="The IP as returned by the IP information provider, in canonical form.")
    ip_version: AddressFamily = Field(
        description="The requested ip_version if one was given, otherwise the family of the returned IP."
    )
    is_ipv4: bool = Field(description="Whether the returned IP is an IPv4 address.")
    is_ipv6: bool = Field(description="Whether the returned IP is an IPv6 address.")
    asn_id: str = Field(default="", description="The ASN as returned by the IP information provider.")
    asn_org: str = Field(
        default="",
        description="The organisation to which the ASN is registered to as returned by the IP information provider.",
    )
