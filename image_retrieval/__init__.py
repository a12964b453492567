"""
image_retrieval — Content-based image retrieval by linear scan.

Ranks a directory of candidate images (or rows of a precomputed feature
cache) by visual dissimilarity to a target and returns the N closest.
Every variant is the same extract → distance → rank pipeline with a
different extractor and distance function.

Modules:
    features       Extractor classes (raw patch, histograms, split regions)
    histograms     Chromaticity, colour and texture histograms
    regions        Validated rectangular image regions
    distances      SSD, chi-squared, correlation, cosine, weighted combos
    ranking        Ranker and the cache-backed rankings
    pipelines      Named variants (patch, chromaticity, split, texture)
    feature_cache  CSV feature cache loading and building
    live           Live camera matching loop
    image_io       Image decoding and directory listing
    errors         Error taxonomy
    cli            `cbir` command
"""

__version__ = "1.0.0"
