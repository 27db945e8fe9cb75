"""
Model utilities package.

This package contains helper modules for training, evaluating, tuning and
serving the gradient-boosted-tree regressor. Typical entrypoints are:

- tabular_gbm.models.train.train_model()            : fit a regressor (optionally with early stopping)
- tabular_gbm.models.evaluate.cross_validate_model() : k-fold cross-validated RMSE/MAE
- tabular_gbm.models.tune.grid_search()              : exhaustive hyperparameter search
- tabular_gbm.models.predict.predict()               : load the saved model and return predictions
"""
