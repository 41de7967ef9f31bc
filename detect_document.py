#!/usr/bin/env python3
"""
Detect a document in an image, print its metrics and save the overlay and the rectified crop
Usage: python3 detect_document.py <path_to_image> [fast|balanced|precise|id_card]
"""

import sys
import cv2
from pathlib import Path

from document_detection import DetectionConfig, DocumentDetector, quad_metrics, rectify
from document_detection.visualizer import QuadVisualizer

PRESETS = {
    'fast': DetectionConfig.fast,
    'balanced': DetectionConfig.balanced,
    'precise': DetectionConfig.precise,
    'id_card': DetectionConfig.id_card,
}


def main():
    if len(sys.argv) < 2:
        print("Usage: python3 detect_document.py <path_to_image> [fast|balanced|precise|id_card]")
        sys.exit(1)

    image_path = Path(sys.argv[1])
    preset = sys.argv[2] if len(sys.argv) > 2 else 'balanced'

    if preset not in PRESETS:
        print(f"Error: Unknown preset '{preset}', choose from {', '.join(PRESETS)}")
        sys.exit(1)

    if not image_path.exists():
        print(f"Error: Image not found: {image_path}")
        sys.exit(1)

    print(f"Loading image: {image_path}")
    image = cv2.imread(str(image_path))

    if image is None:
        print(f"Error: Failed to load image: {image_path}")
        sys.exit(1)

    print(f"Image dimensions: {image.shape[1]}x{image.shape[0]} px")

    # The pipeline works on RGB
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    print(f"Detecting document ({preset})...")
    detector = DocumentDetector(PRESETS[preset]())
    detection = detector.detect(rgb)

    if detection.is_fallback:
        print("✗ Document was not detected, using default rectangle")
    else:
        print(f"✓ Document detected ({detection.strategy}, confidence {detection.confidence:.2f})")

    metrics = quad_metrics(detection.quadrilateral, image.shape)

    print("\nDocument Metrics:")
    print(f"  Cover Ratio:      {metrics['cover_ratio']*100:.1f}%")
    print(f"  Rectangularity:   {metrics['rectangularity']*100:.1f}%")
    print(f"  Angle:            {metrics['angle']:.1f}°")
    print(f"  Perspective:      {metrics['perspective_angle']:.1f}°")
    print(f"  Aspect Ratio:     {metrics['aspect_ratio']:.3f}")

    visualizer = QuadVisualizer()
    overlay = visualizer.visualize_with_metrics(image, detection, metrics)
    overlay_path = image_path.parent / f"detected_{image_path.name}"
    cv2.imwrite(str(overlay_path), overlay)
    print(f"\n✓ Overlay saved: {overlay_path}")

    rectified = rectify(image, detection.quadrilateral)
    rectified_path = image_path.parent / f"rectified_{image_path.name}"
    cv2.imwrite(str(rectified_path), rectified)
    print(f"✓ Rectified document saved: {rectified_path} ({rectified.shape[1]}x{rectified.shape[0]} px)")


if __name__ == "__main__":
    main()
