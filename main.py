#!/usr/bin/env python3
"""
Hand-Eye Calibration Toolkit - Main Entry Point
===============================================

Command-line interface to the hand-eye calibration toolkit:

- web:     start the JSON control API (demo transform buffer)
- solve:   solve the camera pose from a saved sample file and optionally
           export it as a launch file
- solvers: list the available solver ids
"""

import argparse
import logging
import sys

from handeye_core.errors import HandEyeError
from handeye_core.export import export_camera_pose
from handeye_core.models import MountType
from handeye_core.sample_store import SampleStore
from handeye_core.solvers import default_registry, solve_calibration


def main(argv=None):
    parser = argparse.ArgumentParser(description="Hand-Eye Calibration Toolkit")

    parser.add_argument("--mode", choices=['web', 'solve', 'solvers'],
                        default='web', help="Operation mode")
    parser.add_argument("--samples", help="Path to a YAML sample file (solve mode)")
    parser.add_argument("--solver", default="opencv/TSAI",
                        help="Solver id in the form provider/algorithm")
    parser.add_argument("--mount", choices=[m.value for m in MountType],
                        default=MountType.EYE_TO_HAND.value, help="Sensor mount type")
    parser.add_argument("--export", help="Launch file to write the camera pose to (.py, .xml, .yaml)")
    parser.add_argument("--from_frame", default="", help="Parent frame name for the exported pose")
    parser.add_argument("--to_frame", default="", help="Sensor frame name for the exported pose")
    parser.add_argument("--port", type=int, default=5000, help="Web server port (web mode only)")
    parser.add_argument("--host", default='localhost', help="Web server host (web mode only)")
    parser.add_argument("--verbose", action='store_true', help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    if args.mode == 'web':
        print("Starting Hand-Eye Calibration Control API...")
        print(f"Server will be available at http://{args.host}:{args.port}")

        from handeye_web.app import create_app
        app = create_app()
        # Requests are handled on one thread; it is the controller's control thread
        app.run(debug=False, host=args.host, port=args.port, threaded=False)
        return 0

    registry = default_registry()

    if args.mode == 'solvers':
        for solver_id in registry.get_available_solvers():
            print(solver_id)
        return 0

    if not args.samples:
        print("Error: Missing required argument for solve mode")
        print("Required: --samples")
        return 1

    store = SampleStore()
    try:
        count = store.load(args.samples)
        print(f"Loaded {count} samples from {args.samples}")

        result = solve_calibration(store.effector_wrt_world, store.object_wrt_sensor,
                                   MountType(args.mount), args.solver, registry)
    except HandEyeError as e:
        print(f"Error: {e}")
        return 1

    print(f"Camera pose ({result.mount_type.label}) solved with {result.solver_id}:")
    print(result.camera_robot_pose)
    print(f"Translation: {result.translation}")
    print(f"Quaternion (x, y, z, w): {result.quaternion}")
    print(result.reprojection_error_text())

    if args.export:
        try:
            written = export_camera_pose(args.export, result, args.from_frame, args.to_frame)
        except HandEyeError as e:
            print(f"Error: {e}")
            return 1
        print(f"Camera pose saved to: {written}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
