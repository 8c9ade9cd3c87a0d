# config.py
"""Default settings, used when configs/config.yaml leaves a key out."""

TARGET = "sale_price"

RANDOM_STATE = 42
TEST_SIZE = 0.3

# Standardize the test fold with training statistics.
REUSE_TRAIN_STATS = True

KNN_GRID = list(range(2, 11))

RIDGE_COARSE_GRID = [0.001, 0.1, 1.0, 10.0]
RIDGE_REFINE_STEP = 0.01
CV_FOLDS = 10

N_JOBS = 1

BASELINE_FORMULA = ["sqft_living", "bedrooms", "bathrooms"]

CANDIDATE_FORMULAS = {
    "size": ["sqft_living"],
    "size_grade": ["sqft_living", "grade"],
    "size_rooms": ["sqft_living", "bedrooms", "bathrooms"],
    "size_grade_baths": ["sqft_living", "grade", "bathrooms"],
    "size_grade_age": ["sqft_living", "grade", "yr_built"],
    "quality": ["grade", "condition", "bathrooms"],
    "structure": ["sqft_living", "sqft_lot", "floors", "bedrooms"],
    "kitchen_sink": [
        "sqft_living",
        "grade",
        "bathrooms",
        "bedrooms",
        "sqft_lot",
        "yr_built",
        "condition",
        "floors",
    ],
}
