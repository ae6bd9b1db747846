"""User-user collaborative filtering (similar rating patterns) over explicit 1-5 ratings.

Core idea:
- Build sparse per-user rating profiles and mean-center them
- Find each user's top-K peers by Pearson correlation over co-rated items
- Predict scores for unrated items from neighbor deviations; users with too few
  ratings fall back to a global popularity list
"""
