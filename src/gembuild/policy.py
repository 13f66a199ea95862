"""Named security policies controlling how strictly archives are verified."""

from attrs import define


@define(frozen=True, slots=True)
class SecurityPolicy:
    name: str
    verify_data: bool
    verify_signer: bool
    verify_chain: bool
    verify_root: bool
    only_trusted: bool
    only_signed: bool


NO_SECURITY = SecurityPolicy("no", False, False, False, False, False, False)
ALMOST_NO_SECURITY = SecurityPolicy("almost_no", True, False, False, False, False, False)
LOW_SECURITY = SecurityPolicy("low", True, True, False, False, False, False)
MEDIUM_SECURITY = SecurityPolicy("medium", True, True, True, True, True, False)
HIGH_SECURITY = SecurityPolicy("high", True, True, True, True, True, True)

POLICIES: dict[str, SecurityPolicy] = {
    policy.name: policy
    for policy in (
        NO_SECURITY,
        ALMOST_NO_SECURITY,
        LOW_SECURITY,
        MEDIUM_SECURITY,
        HIGH_SECURITY,
    )
}


def get_policy(name: str) -> SecurityPolicy:
    try:
        return POLICIES[name.lower().replace("-", "_")]
    except KeyError:
        raise ValueError(
            f"Unknown security policy {name!r}; expected one of: {', '.join(POLICIES)}"
        ) from None
