"""
Calibration Export Module
=========================

Formats a solved camera pose as a ROS 2 static transform publisher launch
file. Three launch formats are supported, chosen by file extension:

- Python (.py, including .launch.py)
- XML (.xml, including .launch.xml)
- YAML (.yaml / .yml)

Numbers are written with six significant digits.
"""

import logging
import os
from typing import Sequence

from .errors import PersistenceError, ValidationError
from .models import CalibrationResult

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.py', '.xml', '.yaml', '.yml')


def _fmt(value: float) -> str:
    return f"{float(value):g}"


def generate_calibration_python(from_frame: str, to_frame: str,
                                translation: Sequence[float],
                                quaternion: Sequence[float],
                                euler: Sequence[float],
                                mount_type: str) -> str:
    """
    Python launch description.

    Args:
        from_frame: Parent frame name
        to_frame: Child (sensor) frame name
        translation: (x, y, z)
        quaternion: (x, y, z, w)
        euler: Intrinsic XYZ Euler angles, written as comments
        mount_type: Mount label, e.g. "EYE-TO-HAND"
    """
    t = [_fmt(v) for v in translation]
    q = [_fmt(v) for v in quaternion]
    r = [_fmt(v) for v in euler]
    lines = [
        '""" Static transform publisher acquired via MoveIt 2 hand-eye calibration """',
        f'""" {mount_type}: {from_frame} -> {to_frame} """',
        'from launch import LaunchDescription',
        'from launch_ros.actions import Node',
        '',
        '',
        'def generate_launch_description() -> LaunchDescription:',
        '    nodes = [',
        '        Node(',
        '            package="tf2_ros",',
        '            executable="static_transform_publisher",',
        '            output="log",',
        '            arguments=[',
        '                "--frame-id",',
        f'                "{from_frame}",',
        '                "--child-frame-id",',
        f'                "{to_frame}",',
        '                "--x",',
        f'                "{t[0]}",',
        '                "--y",',
        f'                "{t[1]}",',
        '                "--z",',
        f'                "{t[2]}",',
        '                "--qx",',
        f'                "{q[0]}",',
        '                "--qy",',
        f'                "{q[1]}",',
        '                "--qz",',
        f'                "{q[2]}",',
        '                "--qw",',
        f'                "{q[3]}",',
        '                # "--roll",',
        f'                # "{r[0]}",',
        '                # "--pitch",',
        f'                # "{r[1]}",',
        '                # "--yaw",',
        f'                # "{r[2]}",',
        '            ],',
        '        ),',
        '    ]',
        '    return LaunchDescription(nodes)',
    ]
    return '\n'.join(lines) + '\n'


def generate_calibration_xml(from_frame: str, to_frame: str,
                             translation: Sequence[float],
                             quaternion: Sequence[float],
                             euler: Sequence[float],
                             mount_type: str) -> str:
    """XML launch file."""
    t = [_fmt(v) for v in translation]
    q = [_fmt(v) for v in quaternion]
    r = [_fmt(v) for v in euler]
    lines = [
        '<!-- Static transform publisher acquired via MoveIt 2 hand-eye calibration -->',
        f'<!-- {mount_type}: {from_frame} -> {to_frame} -->',
        '',
        '<launch>',
        '    <node',
        '        pkg="tf2_ros"',
        '        exec="static_transform_publisher"',
        '        output="log"',
        '        args="',
        f'            --frame-id {from_frame}',
        f'            --child-frame-id {to_frame}',
        f'            --x {t[0]}',
        f'            --y {t[1]}',
        f'            --z {t[2]}',
        f'            --qx {q[0]}',
        f'            --qy {q[1]}',
        f'            --qz {q[2]}',
        f'            --qw {q[3]}',
        '        "',
        '    />',
        '    <!--',
        f'            roll {r[0]}',
        f'            pitch {r[1]}',
        f'            yaw {r[2]}',
        '    -->',
        '</launch>',
    ]
    return '\n'.join(lines) + '\n'


def generate_calibration_yaml(from_frame: str, to_frame: str,
                              translation: Sequence[float],
                              quaternion: Sequence[float],
                              euler: Sequence[float],
                              mount_type: str) -> str:
    """YAML launch file."""
    t = [_fmt(v) for v in translation]
    q = [_fmt(v) for v in quaternion]
    r = [_fmt(v) for v in euler]
    lines = [
        '# Static transform publisher acquired via MoveIt 2 hand-eye calibration',
        f'# {mount_type}: {from_frame} -> {to_frame}',
        '',
        'launch:',
        '    - node:',
        '          pkg: tf2_ros',
        '          exec: static_transform_publisher',
        '          output: log',
        '          args:',
        '              "',
        f'              --frame-id {from_frame}',
        f'              --child-frame-id {to_frame}',
        f'              --x {t[0]}',
        f'              --y {t[1]}',
        f'              --z {t[2]}',
        f'              --qx {q[0]}',
        f'              --qy {q[1]}',
        f'              --qz {q[2]}',
        f'              --qw {q[3]}',
        '              "',
        f'              # --roll {r[0]}',
        f'              # --pitch {r[1]}',
        f'              # --yaw {r[2]}',
    ]
    return '\n'.join(lines) + '\n'


def resolve_export_path(file_name: str) -> str:
    """
    Apply the default launch-file extension.

    A name without any extension gets ".launch.py"; a name ending in
    ".launch" gets ".py" appended.
    """
    base_name = os.path.basename(file_name)
    if '.' not in base_name:
        return file_name + '.launch.py'
    if file_name.endswith('.launch'):
        return file_name + '.py'
    return file_name


def format_camera_pose(file_name: str, result: CalibrationResult,
                       from_frame: str, to_frame: str) -> str:
    """
    Render a calibration result in the format implied by file_name.

    Raises:
        ValidationError: If the extension is not a supported launch format
    """
    args = (from_frame, to_frame, result.translation, result.quaternion,
            result.euler_xyz, result.mount_type.label)
    if file_name.endswith('.py'):
        return generate_calibration_python(*args)
    if file_name.endswith('.xml'):
        return generate_calibration_xml(*args)
    if file_name.endswith('.yaml') or file_name.endswith('.yml'):
        return generate_calibration_yaml(*args)
    raise ValidationError(
        "Unable to save file, unknown file type. Only `.py`, `.xml`, and `.yaml`/`.yml` are "
        "currently supported for ROS 2 launch scripts.")


def export_camera_pose(file_name: str, result: CalibrationResult,
                       from_frame: str, to_frame: str) -> str:
    """
    Write a calibration result as a launch file.

    Returns:
        str: The path actually written (after extension defaults)

    Raises:
        ValidationError: If a frame name is empty or the extension is unsupported
        PersistenceError: If the file cannot be written
    """
    if not from_frame or not to_frame:
        raise ValidationError("Make sure you have selected the correct frames.")

    file_name = resolve_export_path(file_name)
    content = format_camera_pose(file_name, result, from_frame, to_frame)

    try:
        with open(file_name, 'w') as f:
            f.write(content)
    except OSError as e:
        raise PersistenceError(f"Unable to open file {file_name}: {e}") from e

    logger.info("Saved camera pose (%s: %s -> %s) to %s",
                result.mount_type.label, from_frame, to_frame, file_name)
    return file_name
