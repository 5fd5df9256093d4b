"""
Flask Web Application for Hand-Eye Calibration Control
======================================================

This module provides a JSON control API over a HandEyeController. Each
endpoint corresponds to one control of the calibration panel: take sample,
delete latest sample, clear samples, solve, plan / execute / skip for the
auto calibration, loading and saving samples and joint states, and saving
the camera pose as a launch file.

Planning and execution run in the background; GET /api/status applies
finished operations and reports whether plan/execute may be requested.
"""

import logging

from flask import Flask, jsonify, request

from handeye_core.collaborators import RecordingTransformPublisher, StaticTransformBuffer
from handeye_core.controller import HandEyeController
from handeye_core.errors import HandEyeError, SequencerError, SolveError, ValidationError
from handeye_core.utils import xyz_rpy_to_matrix

logger = logging.getLogger(__name__)


def _error_response(error: HandEyeError):
    logger.warning("%s: %s", error.__class__.__name__, error)
    status_code = 422 if isinstance(error, (SolveError, SequencerError)) else 400
    body = {'success': False, 'error': str(error), 'error_type': error.__class__.__name__}
    if isinstance(error, SequencerError):
        body['result'] = error.result.value
    return jsonify(body), status_code


def _require_path(data: dict) -> str:
    path = data.get('path')
    if not path:
        raise ValidationError("A file path is required")
    return path


def create_app(controller: HandEyeController = None, transform_buffer: StaticTransformBuffer = None) -> Flask:
    """
    Create the Flask application.

    Args:
        controller: Controller to expose. If None, a demo controller backed by
            an in-memory transform buffer is created.
        transform_buffer: In-memory buffer fed by POST /api/transforms. Only
            used when the controller's lookup is this buffer.
    """
    if controller is None:
        transform_buffer = transform_buffer or StaticTransformBuffer()
        controller = HandEyeController(transform_buffer, RecordingTransformPublisher())

    app = Flask(__name__)
    app.config['CONTROLLER'] = controller
    app.config['TRANSFORM_BUFFER'] = transform_buffer

    @app.errorhandler(HandEyeError)
    def handle_handeye_error(error):
        return _error_response(error)

    @app.route('/api/status')
    def get_status():
        controller.sequencer.process_events()
        return jsonify({'success': True, **controller.get_status()})

    @app.route('/api/solvers')
    def get_solvers():
        return jsonify({'success': True, 'solvers': controller.get_available_solvers(),
                        'selected': controller.solver_id})

    @app.route('/api/settings', methods=['POST'])
    def set_settings():
        data = request.get_json(silent=True) or {}
        if 'mount_type' in data:
            try:
                controller.set_mount_type(data['mount_type'])
            except ValueError as e:
                return jsonify({'success': False, 'error': str(e)}), 400
        if 'frame_names' in data:
            controller.update_frame_names(data['frame_names'])
        if 'solver' in data:
            controller.select_solver(data['solver'])
        if 'group' in data:
            controller.set_group_name(data['group'])
        return jsonify({'success': True, **controller.get_status()})

    @app.route('/api/transforms', methods=['POST'])
    def set_transform():
        buffer = app.config['TRANSFORM_BUFFER']
        if buffer is None:
            return jsonify({'success': False, 'error': 'Transforms are provided by an external source'}), 400
        data = request.get_json(silent=True) or {}
        try:
            if 'xyz_rpy' in data:
                matrix = xyz_rpy_to_matrix(data['xyz_rpy'])
            else:
                matrix = data['matrix']
            buffer.set_transform(data['parent'], data['child'], matrix)
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({'success': False, 'error': f'Invalid transform: {e}'}), 400
        return jsonify({'success': True})

    @app.route('/api/samples', methods=['POST'])
    def take_sample():
        result = controller.take_sample()
        return jsonify({'success': True,
                        'sample_count': len(controller.samples),
                        'result': result.to_json() if result is not None else None})

    @app.route('/api/samples', methods=['GET'])
    def get_samples():
        return jsonify({'success': True, 'samples': controller.samples.to_records()})

    @app.route('/api/samples/latest', methods=['DELETE'])
    def delete_latest_sample():
        controller.delete_latest_sample()
        return jsonify({'success': True, 'sample_count': len(controller.samples)})

    @app.route('/api/samples', methods=['DELETE'])
    def clear_samples():
        controller.clear_samples()
        return jsonify({'success': True, 'sample_count': 0})

    @app.route('/api/samples/save', methods=['POST'])
    def save_samples():
        path = _require_path(request.get_json(silent=True) or {})
        controller.save_samples(path)
        return jsonify({'success': True, 'path': path})

    @app.route('/api/samples/load', methods=['POST'])
    def load_samples():
        path = _require_path(request.get_json(silent=True) or {})
        count = controller.load_samples(path)
        return jsonify({'success': True, 'sample_count': count})

    @app.route('/api/joint_states/save', methods=['POST'])
    def save_joint_states():
        path = _require_path(request.get_json(silent=True) or {})
        controller.save_joint_states(path)
        return jsonify({'success': True, 'path': path})

    @app.route('/api/joint_states/load', methods=['POST'])
    def load_joint_states():
        path = _require_path(request.get_json(silent=True) or {})
        count = controller.load_joint_states(path)
        return jsonify({'success': True, 'joint_state_count': count})

    @app.route('/api/solve', methods=['POST'])
    def solve():
        result = controller.solve()
        return jsonify({'success': True, 'result': result.to_json(),
                        'status': {'level': controller.status[0], 'message': controller.status[1]}})

    @app.route('/api/camera_pose/save', methods=['POST'])
    def save_camera_pose():
        path = _require_path(request.get_json(silent=True) or {})
        written = controller.save_camera_pose(path)
        return jsonify({'success': True, 'path': written})

    @app.route('/api/auto/plan', methods=['POST'])
    def auto_plan():
        controller.sequencer.process_events()
        controller.sequencer.request_plan()
        return jsonify({'success': True, 'state': controller.sequencer.state.value}), 202

    @app.route('/api/auto/execute', methods=['POST'])
    def auto_execute():
        controller.sequencer.process_events()
        controller.sequencer.request_execute()
        return jsonify({'success': True, 'state': controller.sequencer.state.value}), 202

    @app.route('/api/auto/skip', methods=['POST'])
    def auto_skip():
        controller.sequencer.process_events()
        progress = controller.sequencer.skip()
        return jsonify({'success': True, 'progress': progress,
                        'target_count': controller.sequencer.target_count})

    @app.route('/api/auto/wait', methods=['POST'])
    def auto_wait():
        data = request.get_json(silent=True) or {}
        timeout = data.get('timeout')
        plan_result = controller.sequencer.wait_for_plan(timeout)
        execution_result = controller.sequencer.wait_for_execution(timeout)
        return jsonify({
            'success': True,
            'plan_result': plan_result.value if plan_result else None,
            'execution_result': execution_result.value if execution_result else None,
            **controller.get_status(),
        })

    return app
