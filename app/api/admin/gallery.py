import os

from flask import Blueprint, jsonify, request, current_app, g, send_from_directory
from sqlalchemy import select, func
from app.extensions import db
from app.models import GalleryItem
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required, is_admin, login_required
from app.utils.helpers import iso
from app.utils.s3_utils import remove_stored_file, safe_filename, store_file

gallery_bp = Blueprint("gallery", __name__, url_prefix="/api/gallery")

SORT_COLUMNS = {
    "name": GalleryItem.name,
    "date": GalleryItem.created_at,
    "size": GalleryItem.size,
    "type": GalleryItem.type,
}


def serialize_item(item):
    return {
        "id": item.id,
        "name": item.name,
        "type": item.type,
        "url": item.url,
        "mime_type": item.mime_type,
        "size": item.size,
        "folder_id": item.folder_id,
        "description": item.description,
        "created_at": iso(item.created_at),
    }


def _upload_size(upload):
    stream = upload.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


@gallery_bp.route("", methods=["GET"])
@login_required
def list_gallery():
    try:
        admin = is_admin(g.current_user)
        filters = []
        if admin:
            folder_id = request.args.get("folder_id", type=int)
            filters.append(GalleryItem.folder_id == folder_id if folder_id else GalleryItem.folder_id.is_(None))
            item_type = (request.args.get("type") or "").upper()
            if item_type in ("FILE", "FOLDER"):
                filters.append(GalleryItem.type == item_type)
        else:
            filters.append(GalleryItem.type == "FILE")

        search = (request.args.get("search") or "").strip()
        if search:
            filters.append(func.lower(GalleryItem.name).like(f"%{search.lower()}%"))

        column = SORT_COLUMNS.get(request.args.get("sort_by", "date"), GalleryItem.created_at)
        order = column.asc() if request.args.get("sort_order", "desc") == "asc" else column.desc()

        # folders first
        ordering = [GalleryItem.type.desc(), order] if admin else [order]
        items = db.session.scalars(
            select(GalleryItem).where(*filters).order_by(*ordering, GalleryItem.id.desc())
        ).all()

        return jsonify({"status": "success", "items": [serialize_item(i) for i in items]}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list gallery: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch gallery", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# POST /api/gallery
# Purpose:
#   Multipart endpoint with an ``action`` field: create_folder or upload.
# -----------------------------------------------------------------------------
@gallery_bp.route("", methods=["POST"])
@admin_required
def create_gallery_item():
    action = request.form.get("action")
    folder_id = request.form.get("folder_id", type=int)

    if folder_id:
        parent = db.session.get(GalleryItem, folder_id)
        if not parent or parent.type != "FOLDER":
            return jsonify({"status": "error", "message": "Folder not found"}), 404

    if action == "create_folder":
        try:
            name = (request.form.get("name") or "").strip()
            if not name:
                return jsonify({"status": "error", "message": "Folder name is required"}), 400

            siblings = select(GalleryItem.id).where(
                GalleryItem.type == "FOLDER",
                GalleryItem.name == name,
                GalleryItem.folder_id == folder_id if folder_id else GalleryItem.folder_id.is_(None),
            )
            if db.session.scalar(siblings):
                return jsonify({"status": "error", "message": "A folder with this name already exists"}), 400

            folder = GalleryItem(
                name=name,
                type="FOLDER",
                folder_id=folder_id,
                description=request.form.get("description"),
            )
            db.session.add(folder)
            db.session.commit()

            log_current_admin("CREATE", "GalleryFolder", folder.id, folder.name)
            return jsonify({"status": "success", "item": serialize_item(folder)}), 201

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create gallery folder: {e}")
            return jsonify({"status": "error", "message": "Failed to create folder", "details": str(e)}), 500

    if action == "upload":
        upload = request.files.get("file")
        if not upload or not upload.filename:
            return jsonify({"status": "error", "message": "A file is required"}), 400

        try:
            filename = safe_filename(upload.filename)
            size = _upload_size(upload)
            url = store_file(upload, filename, upload.mimetype)
        except Exception as e:
            current_app.logger.error(f"Failed to store gallery upload: {e}")
            return jsonify({"status": "error", "message": "File upload failed", "details": str(e)}), 500

        try:
            item = GalleryItem(
                name=(request.form.get("name") or "").strip() or upload.filename,
                type="FILE",
                url=url,
                mime_type=upload.mimetype,
                size=size,
                folder_id=folder_id,
                description=request.form.get("description"),
            )
            db.session.add(item)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            remove_stored_file(url)
            current_app.logger.error(f"Failed to save gallery item, stored file removed: {e}")
            return jsonify({"status": "error", "message": "Failed to save file", "details": str(e)}), 500

        log_current_admin("CREATE", "GalleryFile", item.id, item.name, details={"url": url, "size": size})
        return jsonify({"status": "success", "item": serialize_item(item)}), 201

    return jsonify({"status": "error", "message": "Invalid action"}), 400


@gallery_bp.route("", methods=["DELETE"])
@admin_required
def delete_gallery_item():
    item_id = request.args.get("id", type=int)
    if not item_id:
        return jsonify({"status": "error", "message": "id is required"}), 400

    try:
        item = db.session.get(GalleryItem, item_id)
        if not item:
            return jsonify({"status": "error", "message": "Item not found"}), 404

        if item.type == "FOLDER":
            children = db.session.scalar(
                select(func.count(GalleryItem.id)).where(GalleryItem.folder_id == item.id)
            )
            if children:
                return jsonify({"status": "error", "message": "Folder is not empty"}), 400

        url, name, item_type = item.url, item.name, item.type
        db.session.delete(item)
        db.session.commit()

        if item_type == "FILE" and url:
            remove_stored_file(url)

        log_current_admin("DELETE", "GalleryFolder" if item_type == "FOLDER" else "GalleryFile", item_id, name)
        return jsonify({"status": "success", "message": "Item deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete gallery item {item_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete item", "details": str(e)}), 500


@gallery_bp.route("/files/<path:filename>", methods=["GET"])
def serve_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)
