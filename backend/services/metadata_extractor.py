"""
Location signal extraction from photo metadata.

Reads GPS tags from image EXIF, converts them to signed decimal degrees and
falls back to the device-reported location when the photo carries none.
Also prepares images for the vision classifier.
"""
import base64
import logging
from io import BytesIO
from typing import Any, Dict, Mapping, Optional, Tuple

from domain.models import Coordinate, LocationSignal, LocationSource

logger = logging.getLogger(__name__)

_SOUTH_REFS = {"S", "SOUTH"}
_WEST_REFS = {"W", "WEST"}


def extract_location_signal(
    metadata: Optional[Mapping[str, Any]],
    device_coordinate: Optional[Coordinate] = None,
) -> Optional[LocationSignal]:
    """
    Derive the best-effort coordinate for a capture.

    Args:
        metadata: GPS tags read from the photo (may be None). Pillow-style
            {"GPSInfo": {...}}, flat {"GPSLatitude": ...} and nested
            {"GPS": {"Latitude": ...}} layouts are all understood.
        device_coordinate: Location reported by the device, if any.

    Returns:
        LocationSignal from the photo when its tags are usable (with camera
        heading and GPS accuracy when tagged), otherwise the device coordinate
        unchanged, otherwise None ("no location").
    """
    coordinate = _coordinate_from_metadata(metadata)
    if coordinate is not None:
        direction, accuracy = _heading_fields(metadata)
        logger.debug("Using photo GPS %s heading=%s accuracy=%s", coordinate.as_param(), direction, accuracy)
        return LocationSignal(
            coordinate=coordinate,
            source=LocationSource.PHOTO_METADATA,
            direction=direction,
            accuracy=accuracy,
        )

    if device_coordinate is not None:
        logger.debug("No usable photo GPS; using device location %s", device_coordinate.as_param())
        return LocationSignal(coordinate=device_coordinate, source=LocationSource.DEVICE)

    logger.info("No location signal in photo metadata or device location")
    return None


def _coordinate_from_metadata(metadata: Optional[Mapping[str, Any]]) -> Optional[Coordinate]:
    if not metadata or not isinstance(metadata, Mapping):
        return None

    lat_raw, lat_ref, lon_raw, lon_ref = _gps_fields(metadata)
    if lat_raw is None or lon_raw is None:
        return None

    lat = _signed_degrees(lat_raw, lat_ref, _SOUTH_REFS)
    lon = _signed_degrees(lon_raw, lon_ref, _WEST_REFS)
    if lat is None or lon is None:
        return None

    try:
        return Coordinate(latitude=lat, longitude=lon)
    except ValueError:
        logger.debug("Photo GPS out of range: lat=%s lon=%s", lat, lon)
        return None


def _gps_fields(metadata: Mapping[str, Any]) -> Tuple[Any, Any, Any, Any]:
    """Pick latitude/longitude magnitudes and references from any known layout."""
    gps_info = metadata.get("GPSInfo")
    if isinstance(gps_info, Mapping) and gps_info.get("GPSLatitude") is not None:
        return (
            gps_info.get("GPSLatitude"),
            gps_info.get("GPSLatitudeRef"),
            gps_info.get("GPSLongitude"),
            gps_info.get("GPSLongitudeRef"),
        )

    # Android pickers nest the tags under "GPS"
    nested = metadata.get("GPS")
    if isinstance(nested, Mapping) and nested.get("Latitude") is not None:
        return (
            nested.get("Latitude"),
            nested.get("LatitudeRef"),
            nested.get("Longitude"),
            nested.get("LongitudeRef"),
        )

    return (
        metadata.get("GPSLatitude"),
        metadata.get("GPSLatitudeRef"),
        metadata.get("GPSLongitude"),
        metadata.get("GPSLongitudeRef"),
    )


def _heading_fields(metadata: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """Camera heading (0-360 degrees) and horizontal GPS error (meters), if tagged."""
    gps_info = metadata.get("GPSInfo")
    nested = metadata.get("GPS")
    if isinstance(gps_info, Mapping) and gps_info.get("GPSLatitude") is not None:
        raw_direction = gps_info.get("GPSImgDirection")
        raw_accuracy = gps_info.get("GPSHPositioningError")
    elif isinstance(nested, Mapping) and nested.get("Latitude") is not None:
        raw_direction = nested.get("ImgDirection")
        raw_accuracy = nested.get("HPositioningError")
    else:
        raw_direction = metadata.get("GPSImgDirection")
        raw_accuracy = metadata.get("GPSHPositioningError")

    direction = _to_decimal_magnitude(raw_direction) if raw_direction is not None else None
    if direction is not None and not 0.0 <= direction <= 360.0:
        direction = None
    accuracy = _to_decimal_magnitude(raw_accuracy) if raw_accuracy is not None else None
    if accuracy is not None and accuracy < 0:
        accuracy = None
    return direction, accuracy


def _signed_degrees(raw: Any, ref: Any, negative_refs: set) -> Optional[float]:
    magnitude = _to_decimal_magnitude(raw)
    if magnitude is None:
        return None
    magnitude = abs(magnitude)
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if isinstance(ref, str) and ref.strip().upper() in negative_refs:
        return -magnitude
    return magnitude


def _to_decimal_magnitude(raw: Any) -> Optional[float]:
    """Accept numbers, numeric strings, rationals, or [deg, min, sec] sequences."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (list, tuple)):
        return _dms_to_decimal(raw)
    value = _rational_to_float(raw)
    if value is None:
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _rational_to_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    # IFDRational or similar fraction types
    if hasattr(value, "numerator") and hasattr(value, "denominator"):
        try:
            if value.denominator == 0:
                return None
            return float(value.numerator) / float(value.denominator)
        except (TypeError, ValueError):
            return None
    return None


def _dms_to_decimal(dms: Any) -> Optional[float]:
    """
    Convert degrees/minutes/seconds to unsigned decimal degrees.

    Args:
        dms: List/tuple of [degrees, minutes, seconds] (may be floats or rationals)

    Returns:
        Decimal degrees rounded to 7 places, or None when malformed.
    """
    if not isinstance(dms, (list, tuple)) or len(dms) < 3:
        return None

    parts = [_rational_to_float(p) for p in dms[:3]]
    if any(p is None for p in parts):
        return None
    degrees, minutes, seconds = parts

    decimal = degrees + (minutes / 60.0) + (seconds / 3600.0)
    return round(decimal, 7)  # ~1cm precision


def read_image_metadata(file_bytes: bytes) -> Optional[Dict[str, Any]]:
    """
    Read GPS EXIF tags from image bytes.

    Returns:
        {"GPSInfo": {tag_name: value}} when the image carries GPS tags,
        otherwise None. Never raises.
    """
    try:
        from PIL import Image
        from PIL.ExifTags import GPSTAGS, IFD

        img = Image.open(BytesIO(file_bytes))
        exif = img.getexif()
        if not exif:
            return None

        try:
            gps_raw = exif.get_ifd(IFD.GPSInfo)
        except (AttributeError, KeyError):
            gps_raw = None
        if not gps_raw:
            gps_raw = exif.get(IFD.GPSInfo)
        if not isinstance(gps_raw, Mapping) or not gps_raw:
            return None

        gps_info = {GPSTAGS.get(tag_id, str(tag_id)): value for tag_id, value in gps_raw.items()}
        return {"GPSInfo": gps_info}

    except Exception as exc:
        logger.debug("Could not read EXIF metadata: %s", exc)
        return None


def prepare_image_for_analysis(file_bytes: bytes, max_width: int = 1024, quality: int = 80) -> str:
    """
    Downsize and JPEG-encode an image for the vision classifier.

    Returns:
        A `data:image/jpeg;base64,...` URL.

    Raises:
        Exception if the bytes are not a readable image.
    """
    from PIL import Image, ImageOps

    img = Image.open(BytesIO(file_bytes))
    img = ImageOps.exif_transpose(img)

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    if max_width and img.width > max_width:
        height = max(1, round(img.height * max_width / img.width))
        img = img.resize((max_width, height), Image.LANCZOS)

    output = BytesIO()
    img.save(output, format="JPEG", quality=quality, optimize=True)
    encoded = base64.b64encode(output.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


def register_heif_opener():
    """
    Register HEIF/HEIC opener with Pillow if pillow-heif is available.

    Call this at application startup to enable HEIC support.
    Safe to call multiple times or if pillow-heif is not installed.
    """
    try:
        from pillow_heif import register_heif_opener as _register
        _register()
        return True
    except ImportError:
        return False
