"""
Flask routes for postmatch.

Contains the HTTP endpoints for uploading posts, reverse searching, and
deleting and merging posts.
"""

from __future__ import annotations

import logging
import os

from flask import Blueprint, current_app, jsonify, request

from ..errors import (
    DecodeError,
    DuplicateSignatureViolation,
    InvalidThresholdConfig,
    PostNotFound,
    StorageError,
)
from ..models import mime_type_from_extension

# Create blueprint for routes
api = Blueprint('api', __name__)

# Module logger
_logger = logging.getLogger(__name__)


def _store():
    return current_app.extensions['postmatch_store']


def _pipeline():
    return current_app.extensions['postmatch_pipeline']


def _read_upload() -> tuple[bytes, str]:
    """
    Take content from a multipart 'content' file or the raw request body.

    The MIME type comes from a 'mime_type' form field, the upload's own
    content type, or its file extension, in that order.

    Raises:
        DecodeError: If there is no content or no usable MIME type
    """
    upload = request.files.get('content')
    if upload is not None:
        data = upload.read()
        mime_type = request.form.get('mime_type') or upload.mimetype
        if (not mime_type or mime_type == 'application/octet-stream') and upload.filename:
            try:
                mime_type = mime_type_from_extension(os.path.splitext(upload.filename)[1])
            except ValueError as e:
                raise DecodeError(str(e)) from e
    else:
        data = request.get_data()
        mime_type = request.mimetype

    if not data:
        raise DecodeError("Request contains no content")
    if not mime_type:
        raise DecodeError("Content type is missing")
    return data, mime_type


# =============================================================================
# Error Handlers
# =============================================================================

@api.errorhandler(DecodeError)
def handle_decode_error(e):
    return jsonify({'error': str(e)}), 400


@api.errorhandler(PostNotFound)
def handle_not_found(e):
    return jsonify({'error': str(e)}), 404


@api.errorhandler(StorageError)
def handle_storage_error(e):
    _logger.warning(f"Storage error: {e}")
    return jsonify({'error': str(e)}), 503


@api.errorhandler(DuplicateSignatureViolation)
def handle_integrity_error(e):
    _logger.error(f"Signature integrity violation: {e}")
    return jsonify({'error': str(e)}), 500


@api.errorhandler(InvalidThresholdConfig)
def handle_config_error(e):
    _logger.error(f"Invalid configuration: {e}")
    return jsonify({'error': str(e)}), 500


# =============================================================================
# Route Handlers
# =============================================================================

@api.route('/api/posts', methods=['POST'])
def api_create_post():
    """Store uploaded content as a new post."""
    data, mime_type = _read_upload()
    source = request.form.get('source') or request.args.get('source')

    result = _pipeline().ingest(data, mime_type, source=source)
    return jsonify(result.to_dict()), (201 if result.created else 200)


@api.route('/api/posts/reverse-search', methods=['POST'])
def api_reverse_search():
    """Find posts matching uploaded content without storing it."""
    data, mime_type = _read_upload()
    result = _pipeline().reverse_search(data, mime_type)
    return jsonify(result.to_dict())


@api.route('/api/posts/<int:post_id>')
def api_get_post(post_id: int):
    """Return one post."""
    post = _store().get_post(post_id)
    if post is None:
        raise PostNotFound(f"Post {post_id} does not exist")
    return jsonify(post.to_dict())


@api.route('/api/posts/<int:post_id>', methods=['DELETE'])
def api_delete_post(post_id: int):
    """Delete a post and its signature."""
    _store().delete_post(post_id)
    return jsonify({'status': 'deleted', 'id': post_id})


@api.route('/api/posts/merge', methods=['POST'])
def api_merge_posts():
    """Merge one post into another."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body required'}), 400

    try:
        remove_id = int(data['remove_id'])
        merge_to_id = int(data['merge_to_id'])
    except (KeyError, TypeError, ValueError):
        return jsonify({'error': 'remove_id and merge_to_id must be integers'}), 400
    if remove_id == merge_to_id:
        return jsonify({'error': 'Cannot merge a post into itself'}), 400

    merged = _store().merge_posts(
        remove_id,
        merge_to_id,
        replace_content=bool(data.get('replace_content', False)),
    )
    return jsonify(merged.to_dict())


@api.route('/api/stats')
def api_stats():
    """Return database statistics."""
    return jsonify(_store().get_stats())


__all__ = ['api']
