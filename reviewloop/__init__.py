"""Photo/video review requests rewarded with promo codes"""
