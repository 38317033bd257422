import argparse
import logging
import os
import sys

from bovw import config
from bovw.config import PipelineConfig
from bovw.dataset import load_caltech101
from bovw.errors import BovwError, StageFailedError
from bovw.pipeline import BovwPipeline
from bovw.report import plot_confusion_matrix, save_keypoint_previews, write_results
from bovw.storage import save_codebook, save_histograms

'''
Runs the whole nearest-histogram BoVW pipeline on a Caltech 101 style dataset:
load -> extract descriptors -> k-means vocabulary -> histograms -> classify test images.
'''


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Bag of Visual Words image classification (nearest histogram)")
    parser.add_argument("--dataset-dir", default=config.DATASET_DIR)
    parser.add_argument("--output-dir", default=config.OUTPUT_DIR)
    parser.add_argument("--num-training", type=int, default=config.NUM_TRAINING_IMAGES,
                        help="Training images per category")
    parser.add_argument("--num-test", type=int, default=config.NUM_TEST_IMAGES, help="Test images per category")
    parser.add_argument("--vocab-size", type=int, default=config.VOCABULARY_SIZE, help="Number of visual words (k)")
    parser.add_argument("--feature-type", choices=config.FEATURE_TYPES, default=config.FEATURE_TYPE)
    parser.add_argument("--max-keypoints", type=int, default=config.MAX_KEYPOINTS)
    parser.add_argument("--kmeans-backend", choices=config.KMEANS_BACKENDS, default=config.KMEANS_BACKEND)
    parser.add_argument("--max-iter", type=int, default=config.MAX_ITER)
    parser.add_argument("--minibatch-size", type=int, default=config.MINIBATCH_SIZE)
    parser.add_argument("--seed", type=int, default=config.RANDOM_SEED)
    parser.add_argument("--histogram-norm", choices=config.HISTOGRAM_NORMS, default=config.HISTOGRAM_NORM)
    parser.add_argument("--distance", default=config.DISTANCE_METRIC, help="Histogram distance metric")
    parser.add_argument("--n-jobs", type=int, default=config.N_JOBS)
    parser.add_argument("--save-features", action="store_true", help="Save codebook and histograms")
    parser.add_argument("--save-keypoints", action="store_true",
                        help="Draw the keypoints of the first training image of each category")
    parser.add_argument("--verbose-predictions", action="store_true", help="Print every test prediction")
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    return PipelineConfig(vocab_size=args.vocab_size,
                          feature_type=args.feature_type,
                          max_keypoints=args.max_keypoints,
                          kmeans_backend=args.kmeans_backend,
                          max_iter=args.max_iter,
                          minibatch_size=args.minibatch_size,
                          random_seed=args.seed,
                          histogram_norm=args.histogram_norm,
                          distance_metric=args.distance,
                          n_jobs=args.n_jobs,
                          show_progress=not args.no_progress)


def main(argv=None):
    """
    Main function to orchestrate the workflow.
    """
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s | %(levelname)-7s | %(message)s")

    print("Starting the Image Classification Pipeline...")
    try:
        run_config = build_config(args)
        pipeline = BovwPipeline(run_config)

        # Step 1: Get the data
        dataset = load_caltech101(args.dataset_dir, args.num_training, args.num_test,
                                  random_state=args.seed, show_progress=run_config.show_progress)
        pipeline.load_dataset(dataset)

        if args.save_keypoints:
            save_keypoint_previews(dataset, pipeline.detector, args.output_dir)

        # Step 2: Extract training features and build the vocabulary with KMeans
        pipeline.build_vocabulary()

        # Step 3: Build histograms for each training image
        pipeline.encode_training()

        # Step 4: Classify the test images against every training histogram
        result = pipeline.evaluate()
    except StageFailedError as e:
        print(f"Pipeline failed during {e.stage}: {e.cause}", file=sys.stderr)
        return 1
    except BovwError as e:
        print(f"An error occurred: {e}", file=sys.stderr)
        return 1

    names = dataset.category_names
    if args.verbose_predictions:
        for record in result.records:
            status = "OK " if record.correct else "ERR"
            print(f"[{status}] {names[record.true_category]} #{record.image_index} -> "
                  f"{names[record.predicted_category]} (distance {record.distance:.4f})")

    print(f"Accuracy: {result.accuracy:.4f} ({result.num_correct}/{result.total})")

    write_results(result, names, run_config, args.output_dir)
    plot_confusion_matrix(result.confusion, classes=names,
                          plot_title=f'CM for nearest histogram (Acc: {result.accuracy:.3f})',
                          results_path=args.output_dir, filename='cm_nearest_histogram.png')
    if args.save_features:
        save_codebook(pipeline.codebook, os.path.join(args.output_dir, f'codebook_k{run_config.vocab_size}.joblib'))
        save_histograms(os.path.join(args.output_dir, 'bovw_histograms.h5'), pipeline.codebook,
                        pipeline.training_histograms, pipeline.test_histograms, names)

    print("Pipeline completed successfully!")
    return 0


if __name__ == "__main__":
    # Ensures the script runs only when executed directly
    sys.exit(main())
