"""Utilities for wrapping the JAX session log-density in Pytensor Ops."""

import numpy as np
import pytensor.tensor as pt
from pytensor.graph import Apply, Op

from .._types import LogpFunc, LogpVJP


def make_jax_logp_ops(logp: LogpFunc, logp_vjp: LogpVJP) -> Op:
    """Wrap the session log-density and its gradient in pytensor Ops.

    Parameters
    ----------
    logp
        A function mapping the (session x parameter) matrix and the vector of latent
        missing actions to a vector of per-session log-densities.
    logp_vjp
        The function that calculates the VJP of the logp function.

    Returns
    -------
    Op
        A pytensor Op that computes the per-session log-densities and can be used
        with pytensor.grad.
    """

    class SessionLogpOp(Op):  # pylint: disable=W0223
        """Wraps the JAX session log-density in a pytensor Op."""

        def make_node(self, theta, latents):
            """Take the inputs to the Op and put them in an Apply node.

            Parameters
            ----------
            theta
                The (session x parameter) matrix of session parameters.
            latents
                The vector of latent missing actions. Can be empty.
            """
            inputs = [pt.as_tensor_variable(theta), pt.as_tensor_variable(latents)]
            outputs = [pt.vector()]

            return Apply(self, inputs, outputs)

        def perform(self, node, inputs, output_storage):
            """Perform the Apply node.

            Parameters
            ----------
            inputs
                The numeric values of the session parameters and latent actions.
            output_storage
                One storage cell, which receives the per-session log-densities.
            """
            result = logp(*inputs)
            output_storage[0][0] = np.asarray(result, dtype=node.outputs[0].dtype)

        def grad(self, inputs, output_gradients):
            """Perform the pytensor.grad() operation.

            Notes
            -----
                It should output the VJP of the Op. In other words, if this `Op`
                outputs `y`, and the gradient at `y` is grad(x), the required output
                is y*grad(x).
            """
            return session_logp_vjp_op(*inputs, output_gradients[0])

    class SessionLogpVJPOp(Op):  # pylint: disable=W0223
        """Wraps the VJP of the session log-density in a pytensor Op."""

        def make_node(self, theta, latents, gz):
            """Take the inputs to the Op and put them in an Apply node."""
            inputs = [
                pt.as_tensor_variable(theta),
                pt.as_tensor_variable(latents),
                pt.as_tensor_variable(gz),
            ]
            outputs = [inp.type() for inp in inputs[:-1]]

            return Apply(self, inputs, outputs)

        def perform(self, node, inputs, outputs):
            """Perform the Apply node."""
            results = logp_vjp(*inputs[:-1], gz=inputs[-1])

            for i, result in enumerate(results):
                outputs[i][0] = np.asarray(result, dtype=node.outputs[i].dtype)

    session_logp_op = SessionLogpOp()
    session_logp_vjp_op = SessionLogpVJPOp()

    return session_logp_op
