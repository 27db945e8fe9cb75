"""
tabular_gbm package initializer.

This package contains the project source code for loading a tabular dataset,
encoding its categorical columns, training a gradient-boosted-tree regressor,
evaluating it with k-fold cross-validation and tuning it with a grid search.

Modules
-------
- config: Central configuration and path constants.
- data: Data loading, caching and train/test splitting.
- features: Category encoding and feature/target preparation.
- models: Model training, evaluation, tuning and prediction utilities.
- pipeline: End-to-end command line entrypoint.
"""

__version__ = "0.1.0"
