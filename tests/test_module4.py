"""
Test Suite for Module 4: Wrapper Facade
Tests the detect/get/render contract against a stub engine
"""

import sys
import logging
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from openpose_wrapper import (
    ConfigurationError, DetectionState, FeatureDisabled, HeatmapsDisabled,
    InferenceFailure, KeypointType, OpenPoseWrapper, PrecedingStageMissing, ScaleMode,
)
from openpose_wrapper.body_models import MPI
from stub_engine import STANDING_PERSON, StubEngine, make_test_image, shifted_person

# Any existing directory works as model folder for the stub engine
MODEL_FOLDER = str(Path(__file__).parent)


def make_wrapper(engine=None, **kwargs):
    params = dict(
        net_pose_size=(320, 240),
        output_size=(640, 480),
        model="COCO",
        model_folder=MODEL_FOLDER,
        download_heatmaps=True,
        heatmap_scale_mode=ScaleMode.ZERO_TO_ONE,
        with_face=True,
        with_hands=True,
    )
    params.update(kwargs)
    return OpenPoseWrapper(engine=engine or StubEngine(), **params)


def test_full_body_scenario():
    """Test 1: Pose, hands and heatmaps for one full-body figure"""
    print("\n" + "="*60)
    print("TEST 1: Full Body Scenario")
    print("="*60)

    engine = StubEngine()
    op = make_wrapper(engine)
    image = make_test_image(640, 480)

    op.detect_pose(image)
    pose = op.get_keypoints(KeypointType.POSE)
    print(f"✓ Pose groups: {len(pose)}, shape: {pose[0].shape}")
    assert len(pose) == 1
    assert pose[0].shape == (1, 18, 3)
    assert engine.last_net_image_shape == (240, 320, 3)
    # Network coordinates (320x240) are reported in output resolution (640x480)
    assert np.allclose(pose[0][0, 0], [320.0, 80.0, 0.9])

    op.detect_hands(image)
    hands = op.get_keypoints(KeypointType.HAND)
    print(f"✓ Hand groups: {len(hands)}, shapes: {[h.shape for h in hands]}")
    assert len(hands) == 2
    assert hands[0].shape == (1, 21, 3) and hands[1].shape == (1, 21, 3)
    assert np.allclose(hands[0][..., 2], 0.7)
    assert np.allclose(hands[1][..., 2], 0.6)

    heatmaps = op.get_heatmaps()
    print(f"✓ Heatmaps: {heatmaps.shape}, range [{heatmaps.min():.3f}, {heatmaps.max():.3f}]")
    assert heatmaps.shape == (480, 640, 57)
    assert heatmaps.min() >= 0.0 and heatmaps.max() <= 1.0
    assert op.state is DetectionState.HANDS_DONE
    op.close()


def test_dependent_stages_need_pose():
    """Test 2: detect_face / detect_hands while idle fail"""
    print("\n" + "="*60)
    print("TEST 2: Stage Ordering")
    print("="*60)

    op = make_wrapper()
    for image in (make_test_image(640, 480), make_test_image(320, 240, 0)):
        with pytest.raises(PrecedingStageMissing):
            op.detect_face(image)
        with pytest.raises(PrecedingStageMissing):
            op.detect_hands(image)
    with pytest.raises(PrecedingStageMissing):
        op.get_keypoints(KeypointType.POSE)
    assert op.state is DetectionState.IDLE

    # Querying a stage that did not run for this frame
    op.detect_pose(make_test_image())
    with pytest.raises(PrecedingStageMissing):
        op.get_keypoints(KeypointType.HAND)
    with pytest.raises(PrecedingStageMissing):
        op.get_keypoints("face")
    print("✓ PrecedingStageMissing raised")


def test_hand_count_matches_pose_count():
    """Test 3: Hand groups always have the body instance count"""
    print("\n" + "="*60)
    print("TEST 3: Hand Instance Count")
    print("="*60)

    armless = shifted_person(-100)
    armless[[2, 3, 4, 5, 6, 7], 2] = 0.0
    people = np.stack([STANDING_PERSON, shifted_person(100), armless])
    engine = StubEngine(default_pose=people)
    op = make_wrapper(engine)
    image = make_test_image()

    op.detect_pose(image)
    op.detect_hands(image)
    pose = op.get_keypoints(KeypointType.POSE)[0]
    left, right = op.get_keypoints(KeypointType.HAND)
    print(f"  Pose: {pose.shape}, left: {left.shape}, right: {right.shape}")
    assert len(left) == len(right) == len(pose) == 3
    assert np.all(left[2, :, 2] == 0) and np.all(right[2, :, 2] == 0)
    assert engine.hand_rects[2] == (None, None)

    # No people: two empty groups, hand network not invoked
    engine = StubEngine(default_pose=np.zeros((0, 18, 3), dtype=np.float32))
    op = make_wrapper(engine)
    op.detect_pose(image)
    op.detect_hands(image)
    op.detect_face(image)
    groups = op.get_keypoints(KeypointType.HAND)
    assert [g.shape for g in groups] == [(0, 21, 3), (0, 21, 3)]
    assert op.get_keypoints(KeypointType.FACE)[0].shape == (0, 70, 3)
    assert "hands" not in engine.calls and "face" not in engine.calls
    print("✓ Zero-instance frames give empty groups")


def test_face_detection():
    """Test 4: Faces are parallel to body instances"""
    print("\n" + "="*60)
    print("TEST 4: Face Detection")
    print("="*60)

    op = make_wrapper()
    image = make_test_image()
    op.detect_pose(image)
    op.detect_face(image)
    faces = op.get_keypoints(KeypointType.FACE)
    assert len(faces) == 1
    assert faces[0].shape == (1, 70, 3)
    assert np.allclose(faces[0][..., 2], 0.8)
    assert op.state is DetectionState.FACE_DONE

    op.detect_hands(image)
    assert op.state is DetectionState.FACE_AND_HANDS_DONE
    print("✓ Face keypoints returned")


def test_disabled_features():
    """Test 5: Disabled face/hands/heatmaps raise FeatureDisabled"""
    print("\n" + "="*60)
    print("TEST 5: Disabled Features")
    print("="*60)

    op = make_wrapper(StubEngine(supports_face=False, supports_hands=False, supports_heatmaps=False),
                      with_face=False, with_hands=False, download_heatmaps=False)
    image = make_test_image()

    with pytest.raises(FeatureDisabled):
        op.get_keypoints(KeypointType.FACE)
    with pytest.raises(HeatmapsDisabled):
        op.get_heatmaps()

    for _ in range(3):
        op.detect_pose(image)
        with pytest.raises(FeatureDisabled):
            op.get_keypoints(KeypointType.FACE)
        with pytest.raises(FeatureDisabled):
            op.get_keypoints(KeypointType.HAND)
        with pytest.raises(FeatureDisabled):
            op.detect_face(image)
        with pytest.raises(FeatureDisabled):
            op.detect_hands(image)
        with pytest.raises(HeatmapsDisabled):
            op.get_heatmaps()

    assert issubclass(HeatmapsDisabled, FeatureDisabled)
    print("✓ FeatureDisabled / HeatmapsDisabled raised")


def test_new_pose_replaces_frame():
    """Test 6: Two detect_pose calls, keypoints reflect only the second image"""
    print("\n" + "="*60)
    print("TEST 6: Frame Reset")
    print("="*60)

    engine = StubEngine()
    engine.pose_results = [STANDING_PERSON[None], np.stack([shifted_person(50), shifted_person(-50)])]
    op = make_wrapper(engine)
    image = make_test_image()

    op.detect_pose(image)
    op.detect_hands(image)
    op.detect_pose(make_test_image(value=10))

    pose = op.get_keypoints(KeypointType.POSE)[0]
    print(f"  Second frame people: {len(pose)}")
    assert len(pose) == 2
    assert pose[0, 0, 0] == pytest.approx((160 + 50) * 2)
    assert op.state is DetectionState.POSE_DONE
    with pytest.raises(PrecedingStageMissing):
        op.get_keypoints(KeypointType.HAND)
    print("✓ State reset verified")


def test_inference_failures():
    """Test 7: Engine errors surface as InferenceFailure without losing the last good stage"""
    print("\n" + "="*60)
    print("TEST 7: Inference Failures")
    print("="*60)

    engine = StubEngine()
    op = make_wrapper(engine)
    image = make_test_image()
    op.detect_pose(image)

    engine.fail_stage = "hands"
    with pytest.raises(InferenceFailure) as info:
        op.detect_hands(image)
    assert isinstance(info.value.__cause__, RuntimeError)
    assert op.state is DetectionState.POSE_DONE

    engine.fail_stage = "pose"
    with pytest.raises(InferenceFailure):
        op.detect_pose(image)
    # Previous frame is still queryable
    assert op.get_keypoints(KeypointType.POSE)[0].shape == (1, 18, 3)

    engine.fail_stage = "heatmaps"
    with pytest.raises(InferenceFailure):
        op.detect_pose(image)

    engine.fail_stage = None
    with pytest.raises(InferenceFailure):
        op.detect_pose(np.zeros((480, 640), dtype=np.uint8))
    with pytest.raises(InferenceFailure):
        op.detect_pose(np.zeros((480, 640, 3), dtype=np.float32))
    print("✓ InferenceFailure raised, state preserved")


def test_configuration_errors():
    """Test 8: Invalid configurations fail at construction and release the engine"""
    print("\n" + "="*60)
    print("TEST 8: Configuration Errors")
    print("="*60)

    bad_configs = [
        dict(model="NOT_A_MODEL"),
        dict(net_pose_size=(0, 240)),
        dict(output_size=(640, -1)),
        dict(model_folder=str(Path(MODEL_FOLDER) / "does_not_exist")),
        dict(heatmap_scale_mode=ScaleMode.OUTPUT_RESOLUTION),
        dict(log_level=300),
        dict(backend="tensorrt"),
    ]
    for kwargs in bad_configs:
        engine = StubEngine()
        with pytest.raises(ConfigurationError):
            make_wrapper(engine, **kwargs)
        assert engine.closed, f"Engine not released for {kwargs}"

    # Engine lacking an enabled capability
    engine = StubEngine(supports_face=False)
    with pytest.raises(ConfigurationError):
        make_wrapper(engine)
    assert engine.closed

    # Engine running another body model
    with pytest.raises(ConfigurationError):
        make_wrapper(StubEngine(body_model=MPI))
    print("✓ ConfigurationError raised and engines closed")


def test_heatmap_scale_modes():
    """Test 9: Heatmap value ranges follow the configured mode"""
    print("\n" + "="*60)
    print("TEST 9: Heatmap Scale Modes")
    print("="*60)

    image = make_test_image()

    op = make_wrapper(heatmap_scale_mode=ScaleMode.UNSIGNED_CHAR)
    op.detect_pose(image)
    heatmaps = op.get_heatmaps()
    assert heatmaps.min() >= 0 and heatmaps.max() <= 255
    assert np.array_equal(heatmaps, np.rint(heatmaps))

    op = make_wrapper(heatmap_scale_mode="plus_minus_one")
    op.detect_pose(image)
    heatmaps = op.get_heatmaps()
    assert heatmaps.min() >= -1.0 and heatmaps.max() <= 1.0
    # PAF channels keep their sign
    assert heatmaps[:, :, 19:].min() < -0.5
    print("✓ UnsignedChar and PlusMinusOne ranges respected")


def test_render():
    """Test 10: Render is a pure post-processing step"""
    print("\n" + "="*60)
    print("TEST 10: Render")
    print("="*60)

    op = make_wrapper()
    image = make_test_image(value=0)

    untouched = op.render(image)
    assert np.array_equal(untouched, image)
    assert untouched is not image
    assert op.state is DetectionState.IDLE

    op.detect_pose(image)
    op.detect_hands(image)
    first = op.render(image)
    second = op.render(image)
    assert first.any()
    assert np.array_equal(first, second)
    assert not image.any()
    assert op.state is DetectionState.HANDS_DONE

    # Rendering on a smaller copy rescales keypoints
    small = op.render(make_test_image(320, 240, 0))
    assert small.shape == (240, 320, 3)
    assert small.any()
    print("✓ Render leaves state and input untouched")


def test_resource_lifecycle():
    """Test 11: Context manager releases the engine"""
    print("\n" + "="*60)
    print("TEST 11: Resource Lifecycle")
    print("="*60)

    engine = StubEngine()
    with make_wrapper(engine, log_level=2) as op:
        assert op.logger.level == logging.INFO
        op.detect_pose(make_test_image())
    assert engine.closed

    with pytest.raises(InferenceFailure):
        op.detect_pose(make_test_image())
    op.close()

    with make_wrapper(log_level=255) as op:
        assert op.logger.level > logging.CRITICAL
    print("✓ Engine closed on exit")


def test_log_levels_per_instance():
    """Test 12: Each wrapper keeps its own log level"""
    print("\n" + "="*60)
    print("TEST 12: Per-Instance Log Level")
    print("="*60)

    package_level = logging.getLogger("openpose_wrapper").level
    with make_wrapper(log_level=0) as verbose, make_wrapper(log_level=255) as silent:
        print(f"  Levels: {verbose.logger.level} / {silent.logger.level}")
        assert verbose.logger.isEnabledFor(logging.DEBUG)
        assert not silent.logger.isEnabledFor(logging.CRITICAL)
        assert verbose.logger.name != silent.logger.name
    assert logging.getLogger("openpose_wrapper").level == package_level

    with pytest.raises(ConfigurationError):
        make_wrapper(log_level="verbose")
    print("✓ Second wrapper leaves the first one's level alone")


def test_keypoint_type_names():
    """Test 13: Keypoint types can be given by name"""
    print("\n" + "="*60)
    print("TEST 13: Keypoint Type Names")
    print("="*60)

    with make_wrapper() as op:
        op.detect_pose(make_test_image())
        assert op.get_keypoints("pose")[0].shape == (1, 18, 3)
        with pytest.raises(ValueError):
            op.get_keypoints("feet")
    print("✓ Unknown names raise ValueError")


def test_malformed_engine_output():
    """Test 14: Keypoint arrays with the wrong per-instance shape are rejected"""
    print("\n" + "="*60)
    print("TEST 14: Malformed Engine Output")
    print("="*60)

    engine = StubEngine(default_pose=np.full((2, 27, 3), 0.5, dtype=np.float32))
    with make_wrapper(engine) as op:
        with pytest.raises(InferenceFailure):
            op.detect_pose(make_test_image())
        assert op.state is DetectionState.IDLE
    print("✓ InferenceFailure raised")


def run_all_tests():
    """Run all Module 4 tests"""
    print("\n" + "#"*60)
    print("# MODULE 4 TEST SUITE: WRAPPER FACADE")
    print("#"*60)

    tests = [
        ("Full Body Scenario", test_full_body_scenario),
        ("Stage Ordering", test_dependent_stages_need_pose),
        ("Hand Instance Count", test_hand_count_matches_pose_count),
        ("Face Detection", test_face_detection),
        ("Disabled Features", test_disabled_features),
        ("Frame Reset", test_new_pose_replaces_frame),
        ("Inference Failures", test_inference_failures),
        ("Configuration Errors", test_configuration_errors),
        ("Heatmap Scale Modes", test_heatmap_scale_modes),
        ("Render", test_render),
        ("Resource Lifecycle", test_resource_lifecycle),
        ("Per-Instance Log Level", test_log_levels_per_instance),
        ("Keypoint Type Names", test_keypoint_type_names),
        ("Malformed Engine Output", test_malformed_engine_output),
    ]

    results = []
    for test_name, test_func in tests:
        try:
            test_func()
            results.append((test_name, True))
        except Exception as e:
            print(f"\n✗ Test '{test_name}' failed: {e}")
            results.append((test_name, False))

    print("\n" + "="*60)
    print("TEST SUMMARY")
    print("="*60)

    for test_name, result in results:
        status = "✓ PASS" if result else "✗ FAIL"
        print(f"{status:8s} | {test_name}")

    passed = sum(1 for _, r in results if r)
    print(f"\nTotal: {passed}/{len(results)} tests passed")


if __name__ == "__main__":
    run_all_tests()
