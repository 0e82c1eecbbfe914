"""Reference table for Intune app install error codes.

Agents report codes as signed 32-bit decimals (`-2016214682`); Microsoft
documents them in hex (`0x87D30166`). Both forms, and hex without the `0x`
prefix, resolve to the same entry.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

_INTERNAL_ERROR = (
    "Internal Installation Error",
    "The app couldn't be installed due to an internal error.",
    "Try installing the app manually or create a new macOS app profile. Contact Intune support if the error persists.",
)
_USER_REJECTED = (
    "User Rejected Install/Update",
    "The user rejected the offer to update/install. This means the user declined an update or install prompt "
    "for an app. (Note: On macOS, direct user prompts are rare for managed installs, but these codes might "
    "appear for VPP apps or if user interaction was needed.)",
    "Change deployment type to 'Required' for mandatory apps, or provide user training on accepting app installations.",
)
_DOWNLOAD_FAILED = (
    "App Download Failed",
    "The app couldn't be downloaded. This may happen if the network is poor or the app size is large.",
    "Check network connectivity and ensure sufficient bandwidth. Sync the device to retry installing the app.",
)

# hex -> (title, description, recommendation)
_ERROR_CODE_TABLE: list[tuple[str, tuple[str, str, str]]] = [
    (
        "0x87D13BA2",
        (
            "Invalid Bundle IDs",
            "One or more apps contain invalid bundle IDs. Intune reports that included app identifiers in the "
            "package don't match what's on the device. This usually occurs when a macOS package contains multiple "
            "app bundles and Intune thinks some are missing or unrecognized.",
            "Verify that all bundle IDs in the package are correct. Sometimes less is more. You really only need "
            "one valid ID per app bundle.",
        ),
    ),
    (
        "0x87D13B67",
        (
            "App State Unknown",
            "Intune cannot determine the install status of the app. This often indicates the Intune agent didn't "
            "receive confirmation of success or failure. It can happen due to packaging issues or communication issues.",
            "Check app packaging and Intune agent connectivity. Review installation logs for communication issues.",
        ),
    ),
    (
        "0x87D13B66",
        (
            "App Removed by User",
            "The app is managed, but has been removed by the user. This error means Intune installed the app, but a "
            "user or process later uninstalled it. The app is marked as Failed in Intune because it's no longer "
            "present on the device.",
            "Consider deploying as 'Required' instead of 'Available' to prevent user removal, or educate users about "
            "managed applications.",
        ),
    ),
    (
        "0x87D13B65",
        (
            "Redeeming VPP Code",
            "The device is redeeming the redemption code. Seen with App Store (VPP) apps, it indicates the device is "
            "attempting to redeem a VPP license or App Store redemption code. The install is pending that process.",
            "Wait for VPP redemption to complete. If it persists, check VPP license availability and Apple Business "
            "Manager configuration.",
        ),
    ),
    (
        "0x87D13B64",
        (
            "App Install Failed",
            "A generic installation failure. This can appear for many reasons (signature issues, compatibility "
            "problems, etc.) when a Mac fails to install the pushed package.",
            "Check installation logs, verify app compatibility with macOS version, and ensure proper code signing.",
        ),
    ),
    ("0x87D13B63", _USER_REJECTED),
    ("0x87D13B62", _USER_REJECTED),
    (
        "0x87D13B61",
        (
            "Application is already installed",
            "The user has installed the app before managed app installation could take place",
            "Remove the unmanaged app from the device and then re-deploy the managed app.",
        ),
    ),
    (
        "0x87D30146",
        (
            "App Found on Device but assignment is 'Available'",
            "Available App is present on the Device but the version needs to be updated.",
            "Set the install assignment to 'Required' if you want to force an update.",
        ),
    ),
    (
        "0x87D30143",
        (
            "Unsupported application",
            "The file provided is not supported. Check the requirements for deploying the selected app type.",
            "Check to see if the app is compatible with the macOS version or if it possibly requires that Rosetta be "
            "installed prior to deployment.",
        ),
    ),
    (
        "0x87D3014D",
        (
            "App Not Found on Device",
            "Available App is no longer present on the Device. The detection did not find the app with the given "
            "BundleID value.",
            "Check the app detection rule. Verify the bundle ID matches the actual installed app.",
        ),
    ),
    (
        "0x87D30137",
        (
            "Minimum OS Requirement Not Met",
            "The device doesn't meet the minimum OS requirement set by the admin.",
            "Update macOS to the minimum OS version required by the admin.",
        ),
    ),
    (
        "0x87D30166",
        (
            "Preinstall Script Failed",
            "The preinstall script provided by the admin failed. This might be expected if the preinstall script is "
            "waiting for a condition to become true before the app install can proceed.",
            "Check the preinstall script if the error persists. The failed preinstall script will be retried at the "
            "next device check-in.",
        ),
    ),
    ("0x87D3012F", _INTERNAL_ERROR),
    ("0x87D30130", _INTERNAL_ERROR),
    ("0x87D30136", _INTERNAL_ERROR),
    (
        "0x87D3013E",
        (
            "DMG Contains No Supported App",
            "The DMG file doesn't contain any supported app. It must contain at least one .app file.",
            "Ensure that the uploaded DMG file contains one or more .app files.",
        ),
    ),
    (
        "0x87D30139",
        (
            "DMG File Mount Failed",
            "The DMG file couldn't be mounted for installation.",
            "Try manually mounting the DMG file to verify that the volume loads successfully. Check the DMG file if "
            "the error persists.",
        ),
    ),
    (
        "0x87D3013B",
        (
            "Cannot Install to Applications Directory",
            "The app couldn't be installed to the Applications directory.",
            "Ensure that the device can install apps locally to the Applications directory. Sync the device to retry "
            "installing the app.",
        ),
    ),
    ("0x87D30131", _DOWNLOAD_FAILED),
    ("0x87D30132", _DOWNLOAD_FAILED),
    ("0x87D30133", _INTERNAL_ERROR),
    ("0x87D30134", _INTERNAL_ERROR),
    (
        "0x87D30135",
        (
            "Device Installation Error",
            "The app couldn't be installed due to a device error. This could be due to insufficient disk space or "
            "the app could not be written to the folder.",
            "Ensure sufficient disk space and that the device can install apps to the Applications folder. Sync the "
            "device to retry installing the app.",
        ),
    ),
    (
        "0x87D3013A",
        (
            "Disk Space Exhausted",
            "The physical resources of this disk have been exhausted. This could be due to the hard disk running out "
            "of space or binaries of the installation files being corrupt.",
            "Free up disk space and restart the Microsoft Intune Management Extension service. Verify installation "
            "files are not corrupt.",
        ),
    ),
]


class IntuneErrorCode(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str  # signed 32-bit decimal as logged by the agent
    hexCode: str
    title: str
    description: str
    recommendation: str


def hex_to_signed_decimal(hex_code: str) -> str:
    """`0x87D30166` -> `-2016214682` (two's complement of the 32-bit value)."""
    value = int(hex_code[2:] if hex_code.lower().startswith("0x") else hex_code, 16) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return str(value)


def _build_lookup() -> dict[str, IntuneErrorCode]:
    lookup: dict[str, IntuneErrorCode] = {}
    for hex_code, (title, description, recommendation) in _ERROR_CODE_TABLE:
        error_code = IntuneErrorCode(
            code=hex_to_signed_decimal(hex_code),
            hexCode=f"0x{hex_code[2:].upper()}",
            title=title,
            description=description,
            recommendation=recommendation,
        )
        lookup[error_code.code] = error_code
        lookup[error_code.hexCode.upper()] = error_code
        lookup[error_code.hexCode[2:]] = error_code
    return lookup


_LOOKUP = _build_lookup()


def get_error_details(code: str) -> Optional[IntuneErrorCode]:
    """Look up a code given as signed decimal, `0x` hex or bare hex."""
    key = (code or "").strip().upper()
    if not key:
        return None
    found = _LOOKUP.get(key)
    if found is None and not key.startswith("0X"):
        found = _LOOKUP.get(f"0X{key}")
    return found


def has_error_details(code: str) -> bool:
    return get_error_details(code) is not None


def all_error_codes() -> list[IntuneErrorCode]:
    """Every known code once, in table order."""
    seen: dict[str, IntuneErrorCode] = {}
    for error_code in _LOOKUP.values():
        seen.setdefault(error_code.hexCode, error_code)
    return list(seen.values())
