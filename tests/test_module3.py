"""
Test Suite for Module 3: Detection State Machine
Tests stage ordering, sub-state transitions and frame replacement
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from openpose_wrapper.errors import PrecedingStageMissing
from openpose_wrapper.state import DetectionState, DetectionStateMachine


def _pose(n=1):
    return np.full((n, 18, 3), 0.5, dtype=np.float32)


def test_idle_rejects_dependent_stages():
    """Test 1: Face and hands need a pose pass first"""
    print("\n" + "="*60)
    print("TEST 1: Idle State Ordering")
    print("="*60)

    machine = DetectionStateMachine()
    assert machine.state is DetectionState.IDLE

    with pytest.raises(PrecedingStageMissing):
        machine.require_pose("detect_face")
    with pytest.raises(PrecedingStageMissing):
        machine.complete_face(np.zeros((0, 70, 3)))
    with pytest.raises(PrecedingStageMissing):
        machine.complete_hands([np.zeros((0, 21, 3))] * 2)
    print("✓ PrecedingStageMissing raised while idle")


def test_sub_states_any_order():
    """Test 2: Face and hands can complete in either order"""
    print("\n" + "="*60)
    print("TEST 2: Sub-State Transitions")
    print("="*60)

    machine = DetectionStateMachine()
    machine.begin_frame((640, 480), _pose())
    assert machine.state is DetectionState.POSE_DONE

    machine.complete_hands([np.zeros((1, 21, 3))] * 2)
    assert machine.state is DetectionState.HANDS_DONE

    machine.complete_face(np.zeros((1, 70, 3)))
    assert machine.state is DetectionState.FACE_AND_HANDS_DONE

    machine.begin_frame((640, 480), _pose())
    machine.complete_face(np.zeros((1, 70, 3)))
    assert machine.state is DetectionState.FACE_DONE
    print("✓ Transitions correct")


def test_new_frame_discards_results():
    """Test 3: A new pose pass drops face and hand results of the old frame"""
    print("\n" + "="*60)
    print("TEST 3: Frame Replacement")
    print("="*60)

    machine = DetectionStateMachine()
    first = machine.begin_frame((640, 480), _pose(2))
    machine.complete_face(np.zeros((2, 70, 3)))
    machine.complete_hands([np.zeros((2, 21, 3))] * 2)

    second = machine.begin_frame((320, 240), _pose(1))
    print(f"  Frame ids: {first.frame_id} -> {second.frame_id}")
    assert second.frame_id == first.frame_id + 1
    assert machine.state is DetectionState.POSE_DONE
    assert second.num_people == 1
    assert second.face_keypoints is None and second.hand_keypoints is None

    with pytest.raises(PrecedingStageMissing):
        machine.require_face()
    with pytest.raises(PrecedingStageMissing):
        machine.require_hands()
    print("✓ Old results discarded")


def test_reset():
    """Test 4: Reset returns to idle"""
    print("\n" + "="*60)
    print("TEST 4: Reset")
    print("="*60)

    machine = DetectionStateMachine()
    machine.begin_frame((640, 480), _pose())
    machine.reset()
    assert machine.state is DetectionState.IDLE
    assert machine.frame is None


def run_all_tests():
    """Run all Module 3 tests"""
    print("\n" + "#"*60)
    print("# MODULE 3 TEST SUITE: DETECTION STATE MACHINE")
    print("#"*60)

    tests = [
        ("Idle State Ordering", test_idle_rejects_dependent_stages),
        ("Sub-State Transitions", test_sub_states_any_order),
        ("Frame Replacement", test_new_frame_discards_results),
        ("Reset", test_reset),
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
