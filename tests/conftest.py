import pytest

from rann import Connection, Network, Neuron, Role, numeric, product_neuron


@pytest.fixture(autouse=True)
def _default_precision():
    previous = numeric.get_precision()
    numeric.set_precision(numeric.DEFAULT_PRECISION)
    yield
    numeric.set_precision(previous)


def build_linear_pair(weight=2, locked=False):
    x = Neuron("in", role=Role.INPUT)
    y = Neuron("out", role=Role.OUTPUT)
    return Network([x, y], [Connection(x, y, weight, locked=locked)])


def build_two_layer(activation="linear", locked_first=False):
    x1 = Neuron("x1", role=Role.INPUT)
    x2 = Neuron("x2", role=Role.INPUT)
    bias = Neuron("bias", role=Role.BIAS)
    h1 = Neuron("h1", activation)
    h2 = Neuron("h2", activation)
    out = Neuron("out", role=Role.OUTPUT)
    connections = [
        Connection(x1, h1, "0.5", locked=locked_first),
        Connection(x2, h1, "-0.25"),
        Connection(x1, h2, "0.75"),
        Connection(x2, h2, "0.2"),
        Connection(bias, h1, "0.1"),
        Connection(h1, out, "0.6"),
        Connection(h2, out, "-0.4"),
    ]
    return Network([x1, x2, bias, h1, h2, out], connections)


def build_elman(hidden_activation="tanh", recurrent_weight="0.8"):
    x = Neuron("in", role=Role.INPUT)
    bias = Neuron("bias", role=Role.BIAS)
    hidden = Neuron("hidden", hidden_activation)
    context = Neuron("context", role=Role.CONTEXT)
    out = Neuron("out", role=Role.OUTPUT)
    connections = [
        Connection(x, hidden, "0.5"),
        Connection(bias, hidden, "0.1"),
        Connection(context, hidden, "0.3"),
        Connection(hidden, context, recurrent_weight),
        Connection(hidden, out, "0.7"),
    ]
    return Network([x, bias, hidden, context, out], connections)


def build_product(weights=("1", "1", "2", "1")):
    x1 = Neuron("x1", role=Role.INPUT)
    x2 = Neuron("x2", role=Role.INPUT)
    a = Neuron("a")
    b = Neuron("b")
    p = product_neuron("p", role=Role.OUTPUT)
    w_xa, w_xb, w_ap, w_bp = weights
    connections = [
        Connection(x1, a, w_xa),
        Connection(x2, b, w_xb),
        Connection(a, p, w_ap),
        Connection(b, p, w_bp),
    ]
    return Network([x1, x2, a, b, p], connections)


@pytest.fixture
def linear_pair():
    return build_linear_pair


@pytest.fixture
def two_layer():
    return build_two_layer


@pytest.fixture
def elman():
    return build_elman


@pytest.fixture
def product_net():
    return build_product
