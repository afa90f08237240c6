# eraser

A library for keeping a container node clean: list the images a container
runtime holds, work out which are not used by any running container,
honour exclusion lists, and remove what is left. A scanner side sorts
images into non-compliant and failed ones and hands them to the remover
through named pipes.

## Modules

- `eraser.version` – `get_user_agent(component)` builds
  `eraser/<component>/<version> (<os>/<arch>) <commit>/<timestamp>` from the
  module values `BUILD_VERSION`, `OS_NAME`, `ARCH`, `VCS_COMMIT` and
  `BUILD_TIME`.
- `eraser.endpoint` – `parse_endpoint`, `parse_endpoint_with_fallback_protocol`
  and `get_address` turn runtime endpoints such as
  `unix:///run/containerd/containerd.sock` into a protocol and an address.
  Bad input raises a subclass of `EndpointError`: `EndpointParseError`,
  `ProtocolNotSupportedError`, `EndpointDeprecatedError` or
  `OnlyUnixSocketError`. `RUNTIME_SOCKET_PATHS` maps `docker`, `containerd`
  and `cri-o` to their default socket paths.
- `eraser.images` – the `Image` record (`image_id`, `names`, `digests`, with
  `to_dict` / `from_dict`) and the rules for what may be removed:
  `get_running_images`, `get_non_running_images`, `is_excluded`,
  `process_repo_digests`, `parse_image_list` and `parse_excluded`.
- `eraser.pipes` – `read_image_pipe`, `read_collect_scan_pipe`,
  `write_scan_erase_pipe` and `write_complete_message` pass JSON image lists
  and the `complete` message between collector, scanner and remover through
  named pipes under `/run/eraser.sh/shared-data/`.
- `eraser.pod` – `get_namespace()` (from `POD_NAMESPACE`, default
  `eraser-system`) and `shared_security_context()`.
- `eraser.cri` – CRI records (`CriImage`, `CriContainer`, `ImageSpec`,
  `ContainerMetadata`) and clients. `RuntimeClient` serves a `v1` runtime,
  `V1Alpha2Client` a `v1alpha2` one and converts its records to `v1`.
  `new_client_with_fallback(connection)` tries `v1`, then `v1alpha2`, and
  raises `CriErrors` holding every failure. Deleting an image the runtime no
  longer has (`ImageNotFoundError`) is not an error.
- `eraser.logger` – `parse_level` and `configure(level)`; `debug` gives
  console output, other levels (`info`, `warn`, `error`, ...) give JSON lines.
  An unknown level raises `LogLevelError`.
- `eraser.metrics` – `Counter`, `Histogram`, `Meter`, `MeterProvider`,
  `ManualReader` and `OtlpHttpExporter` (posts OTLP JSON to
  `http://<endpoint>/v1/metrics`), with `configure_metrics`,
  `export_metrics`, `record_metrics_remover`, `record_metrics_scanner` and
  `record_metrics_controller`.
- `eraser.remover` – `remove_images(client, target_images, excluded)`
  removes the named images that are not running and not excluded and
  returns how many were removed; the target `*` prunes every non-running,
  non-excluded image. `load_target_images` reads targets from an image list
  file or from the scan-erase pipe; `signal_completion` writes the completion
  message to the collector and, if its pipe exists, the scanner.
- `eraser.scanner_template` – `ImageProvider`, the receive / send / finish
  exchange a custom scanner follows.
- `eraser.trivy_config` – `Config`, `VulnConfig`, `TimeoutConfig`,
  `ScanStatus`, `default_config`, `load_config` (reads the YAML held under
  `components.scanner.config`), `parse_duration` (`1h30m`, `300ms`, ... to
  seconds), `parse_comma_separated_options` and `true_map_keys`.
- `eraser.trivy_scan` – `Scanner` (a per-image scan function plus a total
  time budget), `scan(scanner, images)` returning a `ScanResult` of
  vulnerable and failed images, `build_option_maps` and `fill_map`.

## Examples

Parsing a runtime endpoint:

```python
from eraser.endpoint import parse_endpoint, parse_endpoint_with_fallback_protocol

parse_endpoint("unix:///run/containerd/containerd.sock")
# ("unix", "/run/containerd/containerd.sock")

parse_endpoint("tcp://localhost:8080")
# ("tcp", "localhost:8080")

parse_endpoint_with_fallback_protocol("/run/crio/crio.sock", "unix")
# ("unix", "/run/crio/crio.sock")
```

Choosing scanner severities:

```python
from eraser.trivy_config import parse_comma_separated_options, true_map_keys

severities = {"CRITICAL": False, "HIGH": False, "MEDIUM": False, "LOW": False, "UNKNOWN": False}
parse_comma_separated_options(severities, "CRITICAL,HIGH")
sorted(true_map_keys(severities))
# ["CRITICAL", "HIGH"]
```

An option that is not a key of the map raises `ValueError` naming the
allowed values.

Removing images: any object with `list_images()`, `list_containers()` and
`delete_image(image)` can serve as the client, such as a `RuntimeClient`.

```python
from eraser.remover import remove_images

removed = remove_images(client, ["*"], excluded={"docker.io/library/*"})
```

## Exclusions

`parse_excluded(directory)` reads every subdirectory named `exclude-*`;
each holds a JSON file of the form
`{"excluded": ["docker.io/library/*", "registry.example.com/app:*"]}`.
An entry ending in `/*` excludes a whole repository, one ending in `:*`
every tag of an image, and any other entry a single id, name or digest.

## What the package does not do

- It has no commands; it is a library to be called from Python.
- It does not open gRPC connections itself: `new_remover_client` takes a
  `connect` callable that returns an object providing the runtime and image
  services.
- It holds no vulnerability database and does not analyse image contents:
  a `Scanner` is given the function that decides each image's `ScanStatus`.
- It has no cluster controller or job scheduling; it works on one node.