from core.imports import cloudinary, current_app, secure_filename
from core.errors import ValidationError, GatewayError

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def configure_cloudinary(app):
    cloudinary.config(
        cloud_name=app.config.get("CLOUDINARY_CLOUD_NAME"),
        api_key=app.config.get("CLOUDINARY_API_KEY"),
        api_secret=app.config.get("CLOUDINARY_API_SECRET"),
        secure=True,
    )


def upload_image(file_storage, folder, max_size=None):
    """Upload an incoming image to Cloudinary and return (url, public_id)."""
    filename = secure_filename(file_storage.filename or "")
    if not filename or not allowed_file(filename):
        raise ValidationError("Only image files are allowed!")
    if not (file_storage.mimetype or "").startswith("image/"):
        raise ValidationError("Only image files are allowed!")

    if max_size:
        file_storage.stream.seek(0, 2)
        size = file_storage.stream.tell()
        file_storage.stream.seek(0)
        if size > max_size:
            raise ValidationError(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB")

    try:
        result = cloudinary.uploader.upload(
            file_storage.stream,
            folder=f"{current_app.config['CLOUDINARY_FOLDER']}/{folder}",
            resource_type="image",
        )
    except Exception as exc:
        current_app.logger.error("Cloudinary upload failed for %s: %s", filename, exc)
        raise GatewayError("Image upload failed") from exc

    return result["secure_url"], result["public_id"]


def delete_image(public_id):
    """Best-effort removal of a stored image; a CDN failure never fails the request."""
    if not public_id:
        return False
    try:
        result = cloudinary.uploader.destroy(public_id)
    except Exception as exc:
        current_app.logger.warning("Cloudinary delete failed for %s: %s", public_id, exc)
        return False
    return result.get("result") == "ok"
