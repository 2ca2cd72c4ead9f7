# stampcard/routes.py

"""
Pass Engine HTTP API

Endpoints the pass editor calls to validate templates, preview the stamp
strip and generate signed bundles.
"""

import logging
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from stampcard.errors import GenerationCancelled, PassEngineError, ValidationError
from stampcard.layout import SUPPORTED_SCALES, calculate_all_scales
from stampcard.log_sanitizer import safe_log_dict
from stampcard.models import PassTemplate, RuntimeContext
from stampcard.signing.archive import PKPASS_MIMETYPE

logger = logging.getLogger(__name__)

passes_bp = Blueprint('passes', __name__, url_prefix='/api/v1/passes')


def get_pass_service():
    return current_app.extensions['stampcard']


def _parse_request():
    """
    Read {template, runtime} from the JSON body.

    Raises:
        ValidationError: for an unusable body
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    if isinstance(data.get('runtime'), dict):
        logger.debug(f"{request.path} runtime: {safe_log_dict(data['runtime'])}")
    template = PassTemplate.from_dict(data.get('template') or {})
    runtime = RuntimeContext.from_dict(data.get('runtime') or {})
    return template, runtime


@passes_bp.route('/validate', methods=['POST'])
def validate_template():
    """
    Validate a template against a recipient's runtime values.

    Expected payload:
    {
        "template": {...},
        "runtime": {"stampsEarned": 3, "stampsRequired": 10}
    }

    Returns:
    {
        "isValid": false,
        "errors": ["header: 3 fields exceeds the limit of 2"],
        "warnings": []
    }
    """
    try:
        template, runtime = _parse_request()
        report = get_pass_service().validate(template, runtime)
        return jsonify(report.to_dict())

    except ValidationError as e:
        return jsonify(e.report.to_dict()), 400
    except Exception as e:
        logger.error(f"Error validating template: {e}", exc_info=True)
        return jsonify({'error': 'Validation failed', 'details': str(e)}), 500


@passes_bp.route('/generate', methods=['POST'])
def generate_pass():
    """
    Generate a signed .pkpass bundle.

    Takes the same payload as /validate. Responds with the archive; the
    serial number, signature kind and warning count travel in headers.
    """
    try:
        template, runtime = _parse_request()
        result = get_pass_service().generate(template, runtime)

        response = send_file(
            BytesIO(result.archive),
            mimetype=PKPASS_MIMETYPE,
            as_attachment=True,
            download_name=f"{result.serial_number}.pkpass"
        )
        response.headers['X-Pass-Serial'] = result.serial_number
        response.headers['X-Pass-Signature-Kind'] = result.bundle.signature_kind.value
        response.headers['X-Pass-Warnings'] = str(len(result.warnings))
        return response

    except ValidationError as e:
        return jsonify(e.to_dict()), 422
    except GenerationCancelled as e:
        return jsonify(e.to_dict()), 503
    except PassEngineError as e:
        logger.error(f"Pass generation failed: {e}")
        return jsonify(e.to_dict()), 500
    except Exception as e:
        logger.error(f"Error generating pass: {e}", exc_info=True)
        return jsonify({'error': 'Generation failed', 'details': str(e)}), 500


@passes_bp.route('/preview/strip', methods=['POST'])
def preview_strip():
    """
    Render the stamp strip as PNG.

    Query params:
        scale: 1, 2 or 3 (default 1)
    """
    try:
        scale = request.args.get('scale', 1, type=int)
        if scale not in SUPPORTED_SCALES:
            return jsonify({'error': f'Unsupported scale {scale}'}), 400

        template, runtime = _parse_request()
        strip = get_pass_service().preview_strip(template, runtime)
        file_name = 'strip.png' if scale == 1 else f'strip@{scale}x.png'

        response = send_file(BytesIO(strip.files[file_name]), mimetype='image/png')
        response.headers['X-Strip-Warnings'] = str(len(strip.warnings))
        return response

    except ValidationError as e:
        return jsonify(e.report.to_dict()), 400
    except PassEngineError as e:
        return jsonify(e.to_dict()), 500
    except Exception as e:
        logger.error(f"Error rendering strip preview: {e}", exc_info=True)
        return jsonify({'error': 'Preview failed', 'details': str(e)}), 500


@passes_bp.route('/layout/<int:stamp_count>', methods=['GET'])
def stamp_layout(stamp_count: int):
    """
    Grid layout and strip geometry for a stamp count, at every scale.

    GET /api/v1/passes/layout/10
    """
    if not 1 <= stamp_count <= 30:
        return jsonify({'error': 'stamp count must be between 1 and 30'}), 400

    dimensions = calculate_all_scales(stamp_count)
    first = dimensions[1]
    return jsonify({
        'stampCount': stamp_count,
        'rows': first.rows,
        'cols': first.cols,
        'scales': {str(scale): result.to_dict() for scale, result in dimensions.items()},
    })
