"""
Image inspection helpers: dimensions, thumbnails and EXIF extraction.
"""
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Optional

from PIL import ExifTags, Image, UnidentifiedImageError

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass
class ExifData:
    """Camera metadata pulled from an image's EXIF block."""
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    lens: Optional[str] = None
    focal_length: Optional[str] = None
    aperture: Optional[str] = None
    shutter_speed: Optional[str] = None
    iso: Optional[int] = None
    taken_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    orientation: Optional[int] = None
    software: Optional[str] = None
    exif_raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessedImage:
    """Result of inspecting an uploaded image."""
    width: int
    height: int
    thumbnail: bytes
    exif: ExifData


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    value = str(value).strip("\x00 ").strip()
    return value or None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def _json_safe(value: Any) -> Any:
    """Convert EXIF values (rationals, bytes, tuples) to JSON-compatible types."""
    if isinstance(value, (str, int, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore").strip("\x00")
    if isinstance(value, (tuple, list)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    f = _to_float(value)
    return f if f is not None else str(value)


def _format_shutter(exposure: Optional[float]) -> Optional[str]:
    if not exposure or exposure <= 0:
        return None
    if exposure >= 1:
        return f"{exposure:g}s"
    return f"1/{round(1 / exposure)}"


def _gps_to_degrees(coord: Any, ref: Optional[str]) -> Optional[float]:
    try:
        degrees, minutes, seconds = (float(v) for v in coord)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    value = degrees + minutes / 60 + seconds / 3600
    if ref in ("S", "W"):
        value = -value
    return round(value, 6)


def _parse_datetime(value: Any) -> Optional[datetime]:
    text = _clean_str(value)
    if not text:
        return None
    try:
        return datetime.strptime(text, EXIF_DATETIME_FORMAT)
    except ValueError:
        return None


def extract_exif(image: Image.Image) -> ExifData:
    """
    Extract camera metadata from an opened image.

    Missing or malformed tags are left as None.
    """
    exif = image.getexif()
    if not exif:
        return ExifData()

    exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
    gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

    raw: Dict[str, Any] = {}
    for tag_id, value in list(exif.items()) + list(exif_ifd.items()):
        name = ExifTags.TAGS.get(tag_id, str(tag_id))
        if name in ("ExifOffset", "GPSInfo", "MakerNote", "UserComment"):
            continue
        raw[name] = _json_safe(value)
    if gps_ifd:
        raw["GPSInfo"] = {ExifTags.GPSTAGS.get(k, str(k)): _json_safe(v) for k, v in gps_ifd.items()}

    focal_length = _to_float(exif_ifd.get(ExifTags.Base.FocalLength))
    f_number = _to_float(exif_ifd.get(ExifTags.Base.FNumber))
    iso = exif_ifd.get(ExifTags.Base.ISOSpeedRatings)
    if isinstance(iso, (tuple, list)):
        iso = iso[0] if iso else None

    latitude = longitude = None
    if gps_ifd:
        latitude = _gps_to_degrees(
            gps_ifd.get(ExifTags.GPS.GPSLatitude), _clean_str(gps_ifd.get(ExifTags.GPS.GPSLatitudeRef))
        )
        longitude = _gps_to_degrees(
            gps_ifd.get(ExifTags.GPS.GPSLongitude), _clean_str(gps_ifd.get(ExifTags.GPS.GPSLongitudeRef))
        )

    orientation = exif.get(ExifTags.Base.Orientation)

    return ExifData(
        camera_make=_clean_str(exif.get(ExifTags.Base.Make)),
        camera_model=_clean_str(exif.get(ExifTags.Base.Model)),
        lens=_clean_str(exif_ifd.get(ExifTags.Base.LensModel)),
        focal_length=f"{focal_length:g}mm" if focal_length else None,
        aperture=f"f/{f_number:g}" if f_number else None,
        shutter_speed=_format_shutter(_to_float(exif_ifd.get(ExifTags.Base.ExposureTime))),
        iso=int(iso) if isinstance(iso, int) else None,
        taken_at=(
            _parse_datetime(exif_ifd.get(ExifTags.Base.DateTimeOriginal))
            or _parse_datetime(exif.get(ExifTags.Base.DateTime))
        ),
        latitude=latitude,
        longitude=longitude,
        orientation=int(orientation) if isinstance(orientation, int) else None,
        software=_clean_str(exif.get(ExifTags.Base.Software)),
        exif_raw=raw,
    )


def make_thumbnail(image: Image.Image, max_size: int = 800, quality: int = 80) -> bytes:
    """
    Render a JPEG thumbnail that fits inside max_size x max_size.

    Aspect ratio is kept and images are never enlarged.
    """
    thumb = image.convert("RGB")
    thumb.thumbnail((max_size, max_size))

    out = BytesIO()
    thumb.save(out, format="JPEG", quality=quality)
    return out.getvalue()


def process_image(data: bytes, max_size: int = 800, quality: int = 80) -> ProcessedImage:
    """
    Inspect an uploaded image.

    Args:
        data: Raw image bytes
        max_size: Thumbnail bounding box edge
        quality: Thumbnail JPEG quality

    Returns:
        Dimensions, thumbnail bytes and EXIF metadata

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image.load()
            return ProcessedImage(
                width=image.width,
                height=image.height,
                thumbnail=make_thumbnail(image, max_size, quality),
                exif=extract_exif(image),
            )
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unsupported image: {e}") from e
