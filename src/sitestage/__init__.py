"""Sitestage - build, serve and publish a statically generated blog."""
