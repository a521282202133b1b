import textwrap

import pytest

import helper


CONFIG_YAML = """\
controls:
  master: master.yaml
  node: node.yaml
  federated: federated.yaml
kubernetes:
  version: "1.7"
master:
  bins:
    apiserver:
      candidates: [kube-apiserver, hyperkube apiserver]
      default: kube-apiserver
    scheduler:
      candidates: [kube-scheduler]
      default: kube-scheduler
  confs:
    apiserver: {root}/etc/kube-apiserver.yaml
    scheduler: {root}/etc/kube-scheduler.yaml
node:
  bins:
    kubelet:
      candidates: [kubelet, hyperkube kubelet]
      default: kubelet
    proxy:
      candidates: [kube-proxy]
      default: kube-proxy
  confs:
    kubelet: {root}/etc/kubelet.yaml
    proxy: {root}/etc/proxy.conf
federated:
  bins:
    fedapiserver:
      candidates: [federation-apiserver]
      default: federation-apiserver
  confs:
    fedapiserver: {root}/etc/federation-apiserver.yaml
optional:
  bins:
    etcd:
      candidates: [etcd]
      default: etcd
  confs:
    etcd: {root}/etc/etcd.yaml
"""

# Audits use echo so the checks run through a real shell without needing
# the Kubernetes binaries; tokens are substituted into the echoed text.
NODE_YAML = """\
id: "4"
text: "Worker Node Security Configuration"
type: node
groups:
  - id: "4.1"
    text: "Worker Node Configuration Files"
    checks:
      - id: "4.1.1"
        text: "kubelet config is referenced"
        audit: "echo <conf:kubelet>"
        tests:
          test_items:
            - compare: {op: has, value: "kubelet.yaml"}
        remediation: "Fix the kubelet config path"
  - id: "4.2"
    text: "Kubelet"
    checks:
      - id: "4.2.1"
        text: "Ensure that the --anonymous-auth argument is set to false"
        audit: "echo <bin:kubelet> --anonymous-auth=false"
        tests:
          test_items:
            - flag: "--anonymous-auth"
              compare: {op: eq, value: "false"}
        remediation: "Set --anonymous-auth=false"
      - id: "4.2.2"
        text: "Ensure that the --read-only-port argument is set to 0"
        audit: "echo <bin:kubelet> --read-only-port=10255"
        tests:
          test_items:
            - flag: "--read-only-port"
              compare: {op: eq, value: "0"}
        remediation: "Set --read-only-port=0"
      - id: "4.2.3"
        text: "Ensure that the --hostname-override argument is not set"
        audit: "echo <bin:kubelet>"
        tests:
          test_items:
            - flag: "--hostname-override"
              set: false
        remediation: "Remove --hostname-override"
        scored: false
      - id: "4.2.4"
        text: "Review event capture"
        type: manual
        remediation: "Review eventRecordQPS by hand"
"""

SIMPLE_CONTROLS = """\
id: "1"
text: "Master Node Security Configuration"
groups:
  - id: "1.1"
    text: "API Server"
    checks:
      - id: "1.1.1"
        text: "profiling disabled"
        audit: "echo kube-apiserver --profiling=false"
        tests:
          test_items:
            - flag: "--profiling"
              compare: {op: eq, value: "false"}
        remediation: "Set --profiling=false"
      - id: "1.1.2"
        text: "anonymous auth disabled"
        audit: "echo kube-apiserver --anonymous-auth=true"
        tests:
          test_items:
            - flag: "--anonymous-auth"
              compare: {op: eq, value: "false"}
        remediation: "Set --anonymous-auth=false"
  - id: "1.2"
    text: "Scheduler"
    checks:
      - id: "1.2.1"
        text: "bind address"
        audit: "echo kube-scheduler --bind-address=0.0.0.0"
        tests:
          test_items:
            - flag: "--bind-address"
              compare: {op: eq, value: "127.0.0.1"}
        remediation: "Set --bind-address=127.0.0.1"
        scored: false
"""


@pytest.fixture
def processes(monkeypatch):
    """The fake process table: append command lines to make them 'running'."""
    table = []
    monkeypatch.setattr(helper, "get_process_lines", lambda: list(table))
    return table


@pytest.fixture
def cfg_dir(tmp_path):
    (tmp_path / "etc").mkdir()
    (tmp_path / "config.yaml").write_text(CONFIG_YAML.format(root=tmp_path))
    (tmp_path / "node.yaml").write_text(NODE_YAML)
    (tmp_path / "master.yaml").write_text(SIMPLE_CONTROLS)
    (tmp_path / "federated.yaml").write_text(textwrap.dedent("""\
        id: "3"
        text: "Federated Deployments"
        groups: []
    """))
    return tmp_path


@pytest.fixture
def no_kubectl(monkeypatch):
    monkeypatch.setattr(helper.shutil, "which", lambda name: None)
