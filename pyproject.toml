[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "videoskim"
version = "0.1.0"
description = "Online single- and multi-view video skimming, keyframe selection and evaluation tools"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "video",
    "summarization",
    "skimming",
    "keyframe",
    "multi-view",
    "gaussian-mixture",
    "surveillance",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
videoskim-eval-keyframe = "videoskim.evaluate:eval_keyframe_main"
videoskim-eval-multi-view-skim = "videoskim.evaluate:eval_multi_view_skim_main"
videoskim-eval-single-view-skim = "videoskim.evaluate:eval_single_view_skim_main"
videoskim-concat-skim = "videoskim.evaluate:concat_single_view_skim_main"
videoskim-mmr = "videoskim.mmr:main"
videoskim-server = "videoskim.server:main"

[tool.hatch.build.targets.wheel]
packages = ["videoskim"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
