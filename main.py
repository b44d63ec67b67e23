"""
Main Entry Point for OpenPose Keypoint Detection
Runs the wrapper on a single image or a folder of images
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2

from openpose_wrapper import OpenPoseWrapper, ScaleMode, detect_all, process_folder
from openpose_wrapper.body_models import BODY_MODELS


def main():
    """Main entry point with command-line interface."""
    parser = argparse.ArgumentParser(
        description='OpenPose body, face and hand keypoint detection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Detect and render one image
  python main.py --mode image --input data/person.jpg --output data/person_rendered.jpg

  # Body and hands only, with heatmaps
  python main.py --mode image --input data/person.jpg --no_face --heatmaps

  # Extract keypoints from every image in a folder
  python main.py --mode folder --input data/input_images --output data/keypoints --render

  # MediaPipe backend (no face, no heatmaps)
  python main.py --mode image --input data/person.jpg --backend mediapipe --no_face
        """
    )

    # Mode selection
    parser.add_argument(
        '--mode',
        type=str,
        required=True,
        choices=['image', 'folder'],
        help='Operation mode'
    )
    parser.add_argument('--input', type=str, required=True,
                       help='Input image (image mode) or folder (folder mode)')
    parser.add_argument('--output', type=str,
                       help='Rendered image (image mode) or output folder (folder mode)')

    # Wrapper arguments
    parser.add_argument('--model', type=str, default='COCO', choices=list(BODY_MODELS),
                       help='Body pose model (default: COCO)')
    parser.add_argument('--model_folder', type=str, default='models/',
                       help='OpenPose models folder (default: models/)')
    parser.add_argument('--net_size', type=int, nargs=2, default=[320, 240],
                       metavar=('W', 'H'), help='Pose network input size (default: 320 240)')
    parser.add_argument('--output_size', type=int, nargs=2, default=[640, 480],
                       metavar=('W', 'H'), help='Output resolution (default: 640 480)')
    parser.add_argument('--backend', type=str, default='opencv_dnn',
                       choices=['opencv_dnn', 'mediapipe'],
                       help='Inference backend (default: opencv_dnn)')
    parser.add_argument('--no_face', action='store_true',
                       help='Disable face detection')
    parser.add_argument('--no_hands', action='store_true',
                       help='Disable hand detection')
    parser.add_argument('--heatmaps', action='store_true',
                       help='Download heatmaps after each pose pass')
    parser.add_argument('--cuda', action='store_true',
                       help='Run networks on CUDA')
    parser.add_argument('--render', action='store_true',
                       help='Save rendered images (folder mode)')
    parser.add_argument('--log_level', type=int, default=2,
                       help='OpenPose log level, 255 is silent (default: 2)')

    args = parser.parse_args()

    logging.basicConfig(format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    if not Path(args.input).exists():
        print(f"Error: Input not found: {args.input}")
        sys.exit(1)

    with OpenPoseWrapper(
        net_pose_size=tuple(args.net_size),
        output_size=tuple(args.output_size),
        model=args.model,
        model_folder=args.model_folder,
        log_level=args.log_level,
        download_heatmaps=args.heatmaps,
        heatmap_scale_mode=ScaleMode.ZERO_TO_ONE,
        with_face=not args.no_face,
        with_hands=not args.no_hands,
        backend=args.backend,
        use_cuda=args.cuda,
    ) as op:

        if args.mode == 'image':
            print("\n" + "="*60)
            print("MODE: SINGLE IMAGE")
            print("="*60 + "\n")

            image = cv2.imread(args.input)
            if image is None:
                print(f"Error: Could not read image: {args.input}")
                sys.exit(1)

            keypoints = detect_all(op, image)
            for name, tensor in keypoints.items():
                print(f"  {name:10s}: {tensor.shape}")

            if args.heatmaps:
                print(f"  {'heatmaps':10s}: {op.get_heatmaps().shape}")

            output = args.output or str(Path(args.input).with_name(f"{Path(args.input).stem}_rendered.jpg"))
            cv2.imwrite(output, op.render(image))
            print(f"\n✓ {op.num_people} people detected")
            print(f"✓ Rendered image saved to: {output}")

        elif args.mode == 'folder':
            print("\n" + "="*60)
            print("MODE: FOLDER")
            print("="*60 + "\n")

            output = args.output or str(Path(args.input) / 'keypoints')
            people = process_folder(op, args.input, output, visualize=args.render)

            print(f"\n✓ Processed {len(people)} images, {sum(people.values())} people")
            print(f"✓ Saved to: {output}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user. Exiting...")
        sys.exit(0)
    except Exception as e:
        print(f"\n\nError: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
