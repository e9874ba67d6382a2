# videoskim

Tools for summarising video from one or several cameras, and for
measuring how good a summary is against hand-labelled events.

The package covers:

- reading and writing keyframe lists and skim (segment) lists;
- a dataset description with ground-truth events, and precision/recall
  evaluation of keyframes, single-view skims and multi-view skims;
- online clustering of frame features (a Gaussian mixture and a
  sequential BSAS clusterer) used to tell background from activity;
- a per-camera `Sensor` that picks non-background frames and, across
  cameras, drops frames that another camera has covered better;
- baseline summarisers: maximal marginal relevance keyframe selection
  and a binary-tree online skimmer;
- frame features: quantised HSV histograms, shot-cut detection and
  motion segments;
- a small networked setup in which camera nodes stream shots and
  features to a collecting server.

## Installation

```
pip install .
```

Only `numpy` is required. To run the tests:

```
pip install ".[test]"
pytest
```

## Dataset layout

A dataset is a directory holding:

- `index.txt`: one line per video, `<file> <offset>`, where the offset
  is the frame number at which that video starts on the shared timeline;
- `event.txt` (optional): ground-truth events. Each event is a block of
  lines `<video_id> <start> <end>`; blocks are separated by blank lines
  and lines starting with `#` are comments.

File formats used by the tools:

| file                 | one line holds              |
|----------------------|-----------------------------|
| keyframe list        | `<video_id> <frame_id>`     |
| single-view skim     | `<start> <end>`             |
| multi-view skim      | `<video_id> <start> <end>`  |

Segment ends are exclusive.

## Commands

Evaluate a list of keyframes (prints precision, recall and the share of
redundant frames):

```
videoskim-eval-keyframe <dataset> <keyframe.txt>
```

Evaluate a skim of one video (the skim's frame numbers are local to the
video; its offset from `index.txt` is added):

```
videoskim-eval-single-view-skim <dataset> <video_id> <skimming.txt>
```

Evaluate a multi-view skim:

```
videoskim-eval-multi-view-skim <dataset> <skimming.txt>
```

Join per-video skims `<dir>/0.txt`, `<dir>/1.txt`, … into one
multi-view skim on standard output, each shifted by its video's offset:

```
videoskim-concat-skim <dataset> <skimming_dir>
```

Select `k` keyframes by maximal marginal relevance from the 256-value
features stored in `<dataset>/ms_feature/<i>.txt` (all-zero features are
skipped). Without a distance table the pairwise distances are computed
and saved as raw float32 values to `dist_table.txt` in the current
directory, so that later runs can pass it back in. The chosen keyframes
are printed and written to the output file:

```
videoskim-mmr <dataset> <k> <output.txt> [dist_table]
```

Run the collecting server for networked camera nodes:

```
videoskim-server --port <port> --feature-port <port> --video-port <port> \
    --start-message <msg> --stop-message <msg> \
    [--feature-size <bytes>] [--directory <dir>]
```

It listens on `--port` and, for every node that connects, opens
connections back to that node's `--feature-port` and `--video-port`.
It accepts nodes until Enter is pressed, then sends `--start-message`
to each; pressing Enter again sends `--stop-message` and waits for the
nodes to close their streams. Every feature packet a node sends
(`--feature-size` bytes, by default the size of a 32-bin packet) is
relayed to all other nodes. For node `i` the received shot list is
written to `<directory>/info-<i>.txt` (`start_time stop_time n_frames`
per line) and the video stream to `<directory>/video-<i>.264`.

## Library use

```python
from videoskim.dataset import Dataset
from videoskim.records import parse_keyframes

dataset = Dataset("data/office")
with open("keyframes.txt") as stream:
    keyframes = parse_keyframes(stream)
report = dataset.evaluate_keyframes(keyframes)
print(report)
```

The evaluation methods return `KeyframeReport`, `SkimReport` and
`MultiViewReport` values.

The clustering models work on one-dimensional `numpy` feature vectors:

```python
from videoskim.mog import OnlineClusterMog

model = OnlineClusterMog(k=9, alpha=0.004, t=0.5, init_sigma=0.005)
index = model.cluster(feature)
if not model.is_background(index):
    ...
```

`videoskim.bsas.OnlineClusterBsas` offers the same kind of online
clustering with hit counts and cluster merging.

`Sensor` (in `videoskim.sensor`) is given a `Sender` and a feature
extractor, a callable that turns a frame into a feature vector.
Subclass `Sender` and implement `send_frame`, `send_feature` and
`finish` to decide where chosen frames and shared features go. Features
exchanged between cameras are `FeaturePacket` values
(`videoskim.packet`), packed as little-endian float32 feature values,
a float32 score and a uint32 time.

`videoskim.simulation` provides `SkimServer`, `SimulateSender`,
`IntraSimulateSender` and `simulate_inter_view` for running several
cameras from frame sequences in one process.

`TreeSummarizer` in `videoskim.tree` is an online binary-tree skimmer
fed shot by shot through `add_shot(shot_features, n_frames)`; `finish()`
returns the selected `(start, end)` frame ranges.

`videoskim.features` holds `quantize_hsv`, `quantized_histogram`,
`shot_score`, `detect_shots`, `motion_segments` and
`hsv_histogram_feature`.

For networked nodes, `videoskim.netutil` has blocking TCP helpers,
`videoskim.sensor_node` has `FeatureReceiver`, `StreamingSender` and
`recv_message`, `videoskim.pixels` converts between BGRA/RGBA buffers
and BGR frames, and `videoskim.postproc` reads the servers' shot lists
(`read_info`) and orders them across views (`schedule`).

## What the package does not do

- It does not read or write video files and does not capture from or
  encode for a camera. Every function works on frames you supply as
  `numpy` arrays; decoding, encoding and display are left to you.
- There is no command for a camera node, for the tree skimmer, for the
  in-process multi-camera simulation, for shot or motion detection, or
  for assembling the server's recordings into one summary video; these
  are available only as library functions and classes.
- No feature extractor for `Sensor` is included; you pass your own.