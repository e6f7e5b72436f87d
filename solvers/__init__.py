"""
Solvers module for the Anime4You link resolver.

Provides the captcha gate that stands between an episode page and its
hoster links.

Submodules:
    captcha: ``CaptchaSolver`` – per-attempt state machine with cache-guided
        guessing and an explicit retry budget.
    challenge: ``CaptchaChallenge`` model and ``ChallengeClient`` for the
        Captcheck API.
    answer_cache: ``AnswerCache`` – durable first-writer-wins store of
        accepted answer icons keyed by question text.
    similarity: ``ImageSimilarityMatcher`` – structural dissimilarity between
        captcha icons.
"""
