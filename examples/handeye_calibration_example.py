#!/usr/bin/env python3
"""
Hand-Eye Calibration Example
============================

This example demonstrates a complete eye-to-hand calibration session with a
simulated robot:

1. Feed robot and target poses into an in-memory transform buffer
2. Take samples (too similar poses are rejected)
3. Solve the camera pose with each available solver
4. Save the samples and export the camera pose as a launch file

Usage:
    python examples/handeye_calibration_example.py
"""

import os
import sys

import numpy as np
from scipy.spatial.transform import Rotation

# Add the toolkit to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handeye_core import HandEyeController, HandEyeError, MountType
from handeye_core.collaborators import RecordingTransformPublisher, StaticTransformBuffer
from handeye_core.utils import inverse_transform_matrix, make_transform, transform_to_pretty_string

FRAME_NAMES = {'sensor': 'camera_link', 'object': 'target', 'base': 'base_link', 'eef': 'tool0'}


def simulate_poses(camera_in_base, target_in_eef, count=8, noise=0.0005, seed=42):
    """Generate (effector_wrt_world, object_wrt_sensor) pairs with a little translation noise."""
    rng = np.random.default_rng(seed)
    poses = []
    for i in range(count):
        rotation = Rotation.from_rotvec(rng.uniform(-0.6, 0.6, 3)).as_matrix()
        translation = [0.4 + 0.05 * i, rng.uniform(-0.2, 0.2), rng.uniform(0.3, 0.6)]
        effector = make_transform(rotation, translation)
        target = inverse_transform_matrix(camera_in_base) @ effector @ target_in_eef
        target[:3, 3] += rng.normal(0.0, noise, 3)
        poses.append((effector, target))
    return poses


def main():
    print("=" * 80)
    print("🤖 Hand-Eye Calibration Example - Eye-to-Hand with a Simulated Robot")
    print("=" * 80)

    results_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "results", "handeye_example")
    os.makedirs(results_dir, exist_ok=True)

    camera_in_base = make_transform(Rotation.from_euler('xyz', [2.5, 0.3, -0.4]).as_matrix(), [1.2, 0.3, 0.8])
    target_in_eef = make_transform(Rotation.from_euler('xyz', [0.2, 0.1, -0.1]).as_matrix(), [0.02, 0.01, 0.1])

    buffer = StaticTransformBuffer()
    publisher = RecordingTransformPublisher()
    controller = HandEyeController(buffer, publisher)
    controller.update_frame_names(FRAME_NAMES)
    controller.set_mount_type(MountType.EYE_TO_HAND)

    # Step 1-2: take samples
    print("\n" + "=" * 60)
    print("📸 Step 1: Take Samples")
    print("=" * 60)
    for effector, target in simulate_poses(camera_in_base, target_in_eef):
        buffer.set_transform(FRAME_NAMES['base'], FRAME_NAMES['eef'], effector)
        buffer.set_transform(FRAME_NAMES['sensor'], FRAME_NAMES['object'], target)
        try:
            controller.take_sample()
            print(f"✅ Sample {len(controller.samples)}: {transform_to_pretty_string(effector)}")
        except HandEyeError as e:
            print(f"⚠️ {e}")

    # Taking the same pose again is rejected
    try:
        controller.take_sample()
    except HandEyeError as e:
        print(f"⚠️ Repeated pose: {e}")

    # Step 3: compare solvers
    print("\n" + "=" * 60)
    print("🧮 Step 2: Solve With Each Solver")
    print("=" * 60)
    for solver_id in controller.get_available_solvers():
        controller.select_solver(solver_id)
        try:
            result = controller.solve()
        except HandEyeError as e:
            print(f"❌ {solver_id}: {e}")
            continue
        position_error = np.linalg.norm(result.camera_robot_pose[:3, 3] - camera_in_base[:3, 3])
        print(f"✅ {solver_id:20s} position error vs ground truth: {position_error * 1000:.3f} mm, "
              f"reprojection: {result.translation_error:.6f} m, {result.rotation_error:.6f} rad")

    # Step 4: save
    print("\n" + "=" * 60)
    print("💾 Step 3: Save Samples and Camera Pose")
    print("=" * 60)
    controller.select_solver("opencv/TSAI")
    controller.solve()
    samples_file = os.path.join(results_dir, "samples.yaml")
    controller.save_samples(samples_file)
    launch_file = controller.save_camera_pose(os.path.join(results_dir, "camera_pose"))
    print(f"✅ Samples saved to: {samples_file}")
    print(f"✅ Camera pose saved to: {launch_file}")
    print(f"📡 Published: {publisher.published[-1][1]} -> {publisher.published[-1][2]}")

    controller.shutdown()
    return True


if __name__ == "__main__":
    main()
