import logging
import os

import cv2
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from bovw.nearest_classified import classification_report_text

logger = logging.getLogger(__name__)

REGION_COLOR = (255, 0, 255)  # BGR magenta


def plot_confusion_matrix(cm, classes, plot_title='Confusion matrix', cmap=plt.cm.Blues, results_path=None, filename=None):
    plt.figure(figsize=(max(8, len(classes)), max(6, len(classes)*0.8)))
    sns.heatmap(cm, annot=True, fmt="d", cmap=cmap, xticklabels=classes, yticklabels=classes)
    plt.title(plot_title)
    plt.ylabel('True label')
    plt.xlabel('Predicted label')
    plt.tight_layout()
    full_path = None
    if results_path and filename:
        os.makedirs(results_path, exist_ok=True)
        full_path = os.path.join(results_path, filename)
        plt.savefig(full_path)
        logger.info("Saved confusion matrix to %s", full_path)
    plt.close()
    return full_path


def write_results(result, category_names, config, results_path, filename='results_nearest_histogram.txt'):
    """Accuracy, classification report, confusion matrix and every prediction in one text file."""
    os.makedirs(results_path, exist_ok=True)
    results_text_file = os.path.join(results_path, filename)
    with open(results_text_file, 'w') as f:
        f.write("--- Nearest-Histogram BoVW Results ---\n")
        for key, value in config.as_dict().items():
            f.write(f"{key}: {value}\n")
        f.write(f"Test Set Accuracy: {result.accuracy:.4f} ({result.num_correct}/{result.total})\n\n")
        f.write("Classification Report:\n")
        f.write(classification_report_text(result, category_names) + "\n\n")
        f.write("Confusion Matrix:\n")
        f.write(np.array2string(result.confusion) + "\n\n")
        f.write("Predictions (true, image, predicted, distance, correct):\n")
        for record in result.records:
            f.write(f"{category_names[record.true_category]}\t{record.image_index}\t"
                    f"{category_names[record.predicted_category]}\t{record.distance:.4f}\t{record.correct}\n")
    logger.info("Saved results to %s", results_text_file)
    return results_text_file


def draw_keypoints(image, keypoints, region=None):
    """Copy of the image with the region rectangle and the keypoints drawn on it."""
    output = cv2.drawKeypoints(image, list(keypoints), None, flags=cv2.DRAW_MATCHES_FLAGS_DRAW_RICH_KEYPOINTS)
    if region is not None:
        x1, y1, x2, y2 = region.as_int_rect()
        cv2.rectangle(output, (x1, y1), (x2, y2), REGION_COLOR, 2)
    return output


def save_keypoint_previews(dataset, detector, results_path):
    """Draw the kept keypoints of the first training image of every category to keypoints_<cat>.jpg."""
    os.makedirs(results_path, exist_ok=True)
    written = []
    for cat_idx, images in enumerate(dataset.training):
        if not images:
            continue
        labeled_image = images[0]
        keypoints = detector.detect(labeled_image.image, labeled_image.region)
        output_path = os.path.join(results_path, f"keypoints_{cat_idx}.jpg")
        cv2.imwrite(output_path, draw_keypoints(labeled_image.image, keypoints, labeled_image.region))
        written.append(output_path)
    logger.info("Saved %d keypoint previews to %s", len(written), results_path)
    return written
